"""
Tests for source resolvers.

PythonSourceResolver is exercised against real files so that identity
handles can be checked across renames.
"""

import json
import os
import shutil
import textwrap
import pytest
from pathlib import Path

from core.models.artifacts import SourceHandle
from core.sources.resolver import PythonSourceResolver, StaticSourceResolver


def write_source(root: Path, relative: str, body: str) -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(body), encoding="utf-8")
    return path


class TestPythonSourceResolver:
    """Test resolution of Python sources on disk"""

    def setup_method(self):
        self.body = """
            from engine import Behaviour

            class Helper:
                pass

            class Foo(Behaviour):
                def update(self):
                    pass
        """

    def test_resolve_primary_class_by_stem(self, tmp_path):
        """Test the class named after the file is preferred"""
        write_source(tmp_path, "Scripts/Foo.py", self.body)
        resolver = PythonSourceResolver(tmp_path)

        source = resolver.resolve("Scripts/Foo.py")

        assert source is not None
        assert source.path == "Scripts/Foo.py"
        assert source.handle.type_name == "Foo"
        assert source.handle.base_names == ("Behaviour",)

    def test_resolve_first_class_fallback(self, tmp_path):
        """Test the first top-level class is used when none matches the stem"""
        write_source(tmp_path, "Other.py", self.body)
        resolver = PythonSourceResolver(tmp_path)

        source = resolver.resolve("Other.py")

        assert source.handle.type_name == "Helper"
        assert source.handle.base_names == ()

    def test_resolve_qualified_and_generic_bases(self, tmp_path):
        write_source(tmp_path, "Door.py", """
            import engine
            from typing import Generic, TypeVar

            T = TypeVar("T")

            class Door(engine.Behaviour, Generic[T]):
                pass
        """)
        resolver = PythonSourceResolver(tmp_path)

        source = resolver.resolve("Door.py")

        assert source.handle.base_names == ("Behaviour", "Generic")

    def test_resolve_absolute_path(self, tmp_path):
        path = write_source(tmp_path, "Scripts/Foo.py", self.body)
        resolver = PythonSourceResolver(tmp_path)

        source = resolver.resolve(str(path))

        assert source.path == "Scripts/Foo.py"

    def test_missing_file(self, tmp_path):
        resolver = PythonSourceResolver(tmp_path)
        assert resolver.resolve("Missing.py") is None

    def test_syntax_error(self, tmp_path):
        """Test a half-written source is not resolvable yet"""
        write_source(tmp_path, "Broken.py", "class Broken(Behaviour:\n")
        resolver = PythonSourceResolver(tmp_path)

        assert resolver.resolve("Broken.py") is None

    def test_no_class(self, tmp_path):
        write_source(tmp_path, "util.py", "def helper():\n    return 1\n")
        resolver = PythonSourceResolver(tmp_path)

        assert resolver.resolve("util.py") is None

    def test_identity_survives_rename(self, tmp_path):
        """Test renaming a file keeps its source id"""
        path = write_source(tmp_path, "Scripts/Foo.py", self.body)
        resolver = PythonSourceResolver(tmp_path)
        before = resolver.resolve("Scripts/Foo.py")

        (tmp_path / "Moved").mkdir()
        os.rename(path, tmp_path / "Moved" / "Foo.py")
        after = resolver.resolve("Moved/Foo.py")

        assert after.handle.same_source(before.handle)

    def test_identity_survives_atomic_replace(self, tmp_path):
        """Test saving through a temp file renamed over the source keeps its id"""
        path = write_source(tmp_path, "Scripts/Foo.py", self.body)
        resolver = PythonSourceResolver(tmp_path)
        before = resolver.resolve("Scripts/Foo.py")

        temp = tmp_path / "Scripts" / ".Foo.py.swp"
        temp.write_text(textwrap.dedent(self.body) + "\n# edited\n", encoding="utf-8")
        os.replace(temp, path)
        after = resolver.resolve("Scripts/Foo.py")

        assert after.handle.same_source(before.handle)

    def test_identity_persists_across_instances(self, tmp_path):
        """Test ids are stored in the project and reloaded"""
        write_source(tmp_path, "Scripts/Foo.py", self.body)
        first = PythonSourceResolver(tmp_path).resolve("Scripts/Foo.py")

        second = PythonSourceResolver(tmp_path).resolve("Scripts/Foo.py")

        assert second.handle.same_source(first.handle)
        assert (tmp_path / ".artifact-sync" / "sources.json").is_file()

    def test_identity_survives_tree_copy(self, tmp_path):
        """Test a copied project keeps its source ids"""
        original = tmp_path / "original"
        write_source(original, "Scripts/Foo.py", self.body)
        before = PythonSourceResolver(original).resolve("Scripts/Foo.py")

        clone = tmp_path / "clone"
        shutil.copytree(original, clone)
        after = PythonSourceResolver(clone).resolve("Scripts/Foo.py")

        assert after.handle.same_source(before.handle)

    def test_record_move(self, tmp_path):
        """Test a reported move carries the id even when the file was copied"""
        write_source(tmp_path, "Scripts/Foo.py", self.body)
        resolver = PythonSourceResolver(tmp_path)
        before = resolver.resolve("Scripts/Foo.py")

        write_source(tmp_path, "Moved/Foo.py", self.body)
        (tmp_path / "Scripts" / "Foo.py").unlink()
        resolver.record_move("Scripts/Foo.py", "Moved/Foo.py")

        assert resolver.resolve("Moved/Foo.py").handle.same_source(before.handle)
        assert resolver.index.get("Scripts/Foo.py") is None

    def test_copy_gets_new_identity(self, tmp_path):
        """Test a duplicated file next to its original is a different source"""
        path = write_source(tmp_path, "Scripts/Foo.py", self.body)
        resolver = PythonSourceResolver(tmp_path)
        original = resolver.resolve("Scripts/Foo.py")

        shutil.copy(path, tmp_path / "Scripts" / "Copy.py")
        copy = resolver.resolve("Scripts/Copy.py")

        assert not copy.handle.same_source(original.handle)

    def test_corrupt_index_ignored(self, tmp_path):
        write_source(tmp_path, "Scripts/Foo.py", self.body)
        index_file = tmp_path / ".artifact-sync" / "sources.json"
        index_file.parent.mkdir()
        index_file.write_text("{not json", encoding="utf-8")

        source = PythonSourceResolver(tmp_path).resolve("Scripts/Foo.py")

        assert source is not None
        assert json.loads(index_file.read_text(encoding="utf-8"))["sources"]["Scripts/Foo.py"]["id"] == \
            source.handle.source_id

    def test_distinct_files_distinct_ids(self, tmp_path):
        write_source(tmp_path, "A.py", "class A(Behaviour):\n    pass\n")
        write_source(tmp_path, "B.py", "class B(Behaviour):\n    pass\n")
        resolver = PythonSourceResolver(tmp_path)

        a = resolver.resolve("A.py")
        b = resolver.resolve("B.py")

        assert not a.handle.same_source(b.handle)

    def test_discover(self, tmp_path):
        """Test discovery skips ignored directories and other extensions"""
        write_source(tmp_path, "b/Two.py", "")
        write_source(tmp_path, "a/One.py", "")
        write_source(tmp_path, "a/notes.txt", "")
        write_source(tmp_path, ".venv/lib/Skip.py", "")
        resolver = PythonSourceResolver(tmp_path)

        found = list(resolver.discover(".py", ignored_directories=[".venv"]))

        assert found == ["a/One.py", "b/Two.py"]


class TestAncestorResolution:
    """Test transitive base class collection"""

    def test_indirect_subclass_same_module(self, tmp_path):
        write_source(tmp_path, "Foo.py", """
            from engine import Behaviour

            class MyBase(Behaviour):
                pass

            class Foo(MyBase):
                pass
        """)
        resolver = PythonSourceResolver(tmp_path)

        source = resolver.resolve("Foo.py")

        assert source.handle.type_name == "Foo"
        assert source.handle.base_names == ("MyBase", "Behaviour")

    def test_indirect_subclass_relative_import(self, tmp_path):
        write_source(tmp_path, "game/__init__.py", "")
        write_source(tmp_path, "game/base.py", """
            from engine import Behaviour

            class MyBase(Behaviour):
                pass
        """)
        write_source(tmp_path, "game/actors/__init__.py", "")
        write_source(tmp_path, "game/actors/Foo.py", """
            from ..base import MyBase

            class Foo(MyBase):
                pass
        """)
        resolver = PythonSourceResolver(tmp_path)

        source = resolver.resolve("game/actors/Foo.py")

        assert source.handle.base_names == ("MyBase", "Behaviour")

    def test_indirect_subclass_absolute_import_and_reexport(self, tmp_path):
        write_source(tmp_path, "game/core.py", """
            class MyBase(Behaviour):
                pass
        """)
        write_source(tmp_path, "game/__init__.py", "from .core import MyBase\n")
        write_source(tmp_path, "Scripts/Foo.py", """
            from game import MyBase

            class Foo(MyBase):
                pass
        """)
        resolver = PythonSourceResolver(tmp_path)

        source = resolver.resolve("Scripts/Foo.py")

        assert source.handle.base_names == ("MyBase", "Behaviour")

    def test_aliased_import(self, tmp_path):
        write_source(tmp_path, "bases.py", """
            class MyBase(Behaviour):
                pass
        """)
        write_source(tmp_path, "Foo.py", """
            from bases import MyBase as Base

            class Foo(Base):
                pass
        """)
        resolver = PythonSourceResolver(tmp_path)

        source = resolver.resolve("Foo.py")

        assert source.handle.base_names == ("Base", "MyBase", "Behaviour")

    def test_import_outside_root_not_followed(self, tmp_path):
        root = tmp_path / "project"
        write_source(tmp_path, "outside.py", """
            class MyBase(Behaviour):
                pass
        """)
        write_source(root, "Foo.py", """
            from ..outside import MyBase

            class Foo(MyBase):
                pass
        """)
        resolver = PythonSourceResolver(root)

        source = resolver.resolve("Foo.py")

        assert source.handle.base_names == ("MyBase",)

    def test_class_cycle_terminates(self, tmp_path):
        """Test mutually recursive imports do not loop"""
        write_source(tmp_path, "a.py", """
            from b import B

            class A(B):
                pass
        """)
        write_source(tmp_path, "b.py", """
            from a import A

            class B(A):
                pass
        """)
        resolver = PythonSourceResolver(tmp_path)

        source = resolver.resolve("a.py")

        assert source.handle.base_names == ("B", "A")

    def test_unparseable_base_module(self, tmp_path):
        write_source(tmp_path, "bases.py", "class MyBase(Behaviour:\n")
        write_source(tmp_path, "Foo.py", """
            from bases import MyBase

            class Foo(MyBase):
                pass
        """)
        resolver = PythonSourceResolver(tmp_path)

        source = resolver.resolve("Foo.py")

        assert source.handle.base_names == ("MyBase",)

    def test_base_module_edit_picked_up(self, tmp_path):
        """Test cached base modules are re-read after they change"""
        bases = write_source(tmp_path, "bases.py", "class MyBase:\n    pass\n")
        write_source(tmp_path, "Foo.py", """
            from bases import MyBase

            class Foo(MyBase):
                pass
        """)
        resolver = PythonSourceResolver(tmp_path)
        assert resolver.resolve("Foo.py").handle.base_names == ("MyBase",)

        bases.write_text("class MyBase(Behaviour):\n    pass\n", encoding="utf-8")
        stat = bases.stat()
        os.utime(bases, ns=(stat.st_atime_ns, stat.st_mtime_ns + 1_000_000_000))

        assert resolver.resolve("Foo.py").handle.base_names == ("MyBase", "Behaviour")


class TestStaticSourceResolver:
    """Test the in-memory resolver"""

    def setup_method(self):
        self.handle = SourceHandle(source_id="src-1", type_name="Foo", base_names=("Behaviour",))
        self.resolver = StaticSourceResolver({"Scripts\\Foo.py": self.handle})

    def test_resolve(self):
        source = self.resolver.resolve("Scripts/Foo.py")

        assert source.path == "Scripts/Foo.py"
        assert source.handle == self.handle

    def test_resolve_unknown(self):
        assert self.resolver.resolve("Nope.py") is None

    def test_move_keeps_handle(self):
        self.resolver.move("Scripts/Foo.py", "Other/Bar.py")

        assert self.resolver.resolve("Scripts/Foo.py") is None
        assert self.resolver.resolve("Other/Bar.py").handle == self.handle

    def test_remove(self):
        self.resolver.remove("Scripts/Foo.py")
        assert self.resolver.resolve("Scripts/Foo.py") is None

    def test_discover(self):
        self.resolver.add("Readme.md", SourceHandle(source_id="doc"))
        assert self.resolver.discover(".py") == ["Scripts/Foo.py"]

    def test_record_move_follows_known_source(self):
        self.resolver.record_move("Scripts/Foo.py", "Other/Bar.py")

        assert self.resolver.resolve("Other/Bar.py").handle == self.handle

    def test_record_move_unknown_is_noop(self):
        self.resolver.record_move("Nope.py", "Other/Bar.py")

        assert self.resolver.resolve("Other/Bar.py") is None
        assert self.resolver.resolve("Scripts/Foo.py").handle == self.handle
