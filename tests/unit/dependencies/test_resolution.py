from __future__ import annotations

from repo_index.dependencies import ModuleResolver, external_package_name

KNOWN = [
    "src/app.ts",
    "src/components/index.tsx",
    "src/util.js",
    "pkg/__init__.py",
    "pkg/models.py",
    "pkg/sub/helpers.py",
    "src/tools/cli.py",
]


def test_relative_specifiers_probe_extensions_and_index_files() -> None:
    resolver = ModuleResolver(KNOWN)

    assert resolver.resolve("src/app.ts", "./util", "TypeScript") == "src/util.js"
    assert resolver.resolve("src/app.ts", "./components", "TypeScript") == (
        "src/components/index.tsx"
    )
    assert resolver.resolve("src/app.ts", "../../escape", "TypeScript") is None


def test_root_alias_resolves_from_repository_root() -> None:
    resolver = ModuleResolver(KNOWN, root_alias="@/")

    assert resolver.resolve("src/app.ts", "@/src/util", "TypeScript") == "src/util.js"
    assert resolver.is_internal("src/app.ts", "@/does/not/exist", "TypeScript")


def test_python_dotted_and_relative_modules() -> None:
    resolver = ModuleResolver(KNOWN)

    assert resolver.resolve("main.py", "pkg.models", "Python") == "pkg/models.py"
    assert resolver.resolve("main.py", "pkg", "Python") == "pkg/__init__.py"
    assert resolver.resolve("pkg/sub/helpers.py", "..models", "Python") == "pkg/models.py"
    assert resolver.resolve("pkg/models.py", ".", "Python") == "pkg/__init__.py"
    assert resolver.resolve("main.py", "tools.cli", "Python") == "src/tools/cli.py"
    assert resolver.resolve("main.py", "requests", "Python") is None
    assert not resolver.is_internal("main.py", "requests", "Python")


def test_external_package_names() -> None:
    assert external_package_name("lodash/fp") == "lodash"
    assert external_package_name("@scope/pkg/deep") == "@scope/pkg"
    assert external_package_name("@scope") is None
    assert external_package_name("os.path", "Python") == "os"
    assert external_package_name("./local") is None


def test_python_from_import_prefers_submodules_over_package() -> None:
    resolver = ModuleResolver(["pkg/__init__.py", "pkg/a.py", "pkg/b.py", "pkg/c.py"])

    assert resolver.resolve_import("pkg/a.py", ".", "Python", ("b",)) == [("pkg/b.py", ("b",))]
    assert resolver.resolve_import("pkg/a.py", ".", "Python", ("b", "VERSION")) == [
        ("pkg/b.py", ("b",)),
        ("pkg/__init__.py", ("VERSION",)),
    ]
    assert resolver.resolve_import("pkg/a.py", ".c", "Python", ("thing",)) == [
        ("pkg/c.py", ("thing",))
    ]
    assert resolver.resolve_import("main.py", "pkg", "Python", ("c",)) == [
        ("pkg/c.py", ("c",))
    ]


def test_non_python_imports_do_not_probe_items_as_modules() -> None:
    resolver = ModuleResolver(["src/app.ts", "src/lib/index.ts", "src/lib/x.ts"])

    assert resolver.resolve_import("src/app.ts", "./lib", "TypeScript", ("x",)) == [
        ("src/lib/index.ts", ("x",))
    ]
