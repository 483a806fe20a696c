from pathlib import Path

import pytest

from qjsbuild.builders import CBuilder, StaticLibSpec
from qjsbuild.errors import ToolExecutionError
from qjsbuild.models import DefineSet


def _spec(tmp_path: Path, **overrides) -> StaticLibSpec:
    src = tmp_path / "src"
    src.mkdir(exist_ok=True)
    for name in ("a.c", "b.c"):
        src.joinpath(name).write_text(f"int {name[0]};\n", encoding="utf-8")
    values = {
        "name": "quickjs",
        "sources": (src / "a.c", src / "b.c"),
        "include_dirs": (src,),
        "output_dir": tmp_path / "out",
        "defines": DefineSet((("_GNU_SOURCE", None), ("CONFIG_VERSION", '"2020-01-19"'))),
    }
    values.update(overrides)
    return StaticLibSpec(**values)


def test_build_compiles_each_source_then_archives(tmp_path: Path, fake_runner) -> None:
    spec = _spec(tmp_path)
    builder = CBuilder(ar_mode="crsD", runner=fake_runner)

    artifact = builder.build(spec)

    assert artifact.path == tmp_path / "out" / "libquickjs.a"
    assert artifact.path.read_bytes().startswith(b"!<arch>\n")
    assert [obj.name for obj in artifact.objects] == ["a.o", "b.o"]
    compiles = [call for call in fake_runner.calls_for("cc") if "-Werror" not in call]
    assert len(compiles) == 2
    assert compiles[0][-3:] == (str(spec.sources[0]), "-o", str(artifact.objects[0]))
    (archive_call,) = fake_runner.calls_for("ar")
    assert archive_call[:3] == ("ar", "crsD", str(artifact.path))
    assert artifact.commands[-1] == archive_call


def test_compile_flags_carry_defines_includes_and_reproducibility(tmp_path: Path, fake_runner) -> None:
    spec = _spec(tmp_path, flags=("--sysroot=/sdk/share/wasi-sysroot",))
    flags = CBuilder(runner=fake_runner).compile_flags(spec)

    assert flags[:4] == ("-c", "-O2", "-ffunction-sections", "-fdata-sections")
    assert "-fPIC" in flags
    assert f"-ffile-prefix-map={tmp_path / 'src'}=." in flags
    assert f"-I{tmp_path / 'src'}" in flags
    assert "-D_GNU_SOURCE" in flags
    assert '-DCONFIG_VERSION="2020-01-19"' in flags
    assert flags[-1] == "--sysroot=/sdk/share/wasi-sysroot"


def test_extra_warnings_are_never_enabled(tmp_path: Path, fake_runner) -> None:
    spec = _spec(tmp_path, pic=False)
    flags = CBuilder(runner=fake_runner).compile_flags(spec)

    assert "-fPIC" not in flags
    for flag in ("-Wall", "-Wextra", "-Werror"):
        assert flag not in flags


def test_quiet_warning_flag_is_checked_once(tmp_path: Path, fake_runner) -> None:
    builder = CBuilder(runner=fake_runner)
    spec = _spec(tmp_path)

    first = builder.compile_flags(spec)
    second = builder.compile_flags(spec)

    assert "-Wno-implicit-const-int-float-conversion" in first
    assert first == second
    checks = [call for call in fake_runner.calls_for("cc") if "-Werror" in call]
    assert len(checks) == 1


def test_unsupported_quiet_warning_is_dropped(tmp_path: Path, fake_runner) -> None:
    fake_runner.fail("cc", "error: unrecognized command-line option", when=lambda argv: "-Werror" in argv)
    flags = CBuilder(runner=fake_runner).compile_flags(_spec(tmp_path))

    assert "-Wno-implicit-const-int-float-conversion" not in flags


def test_compile_failure_surfaces_diagnostics(tmp_path: Path, fake_runner) -> None:
    fake_runner.fail("cc", "b.c:1:1: error: unknown type name 'int2'", when=lambda argv: argv[-3].endswith("b.c"))

    with pytest.raises(ToolExecutionError) as excinfo:
        CBuilder(runner=fake_runner).build(_spec(tmp_path))

    assert excinfo.value.context["operation"] == "compile"
    assert "unknown type name" in excinfo.value.context["stderr"]
    assert fake_runner.calls_for("ar") == []


def test_compile_error_after_long_warning_output_is_kept(tmp_path: Path, fake_runner) -> None:
    warnings = "".join(
        f"quickjs.c:{line}:5: warning: implicit conversion changes signedness [-Wsign-conversion]\n"
        for line in range(1, 81)
    )
    error = "quickjs.c:9000:3: error: unknown type name 'JSFoo'"
    assert len(warnings) > 4000
    fake_runner.fail("cc", warnings + error, when=lambda argv: argv[-3].endswith("a.c"))

    with pytest.raises(ToolExecutionError) as excinfo:
        CBuilder(runner=fake_runner).build(_spec(tmp_path))

    assert excinfo.value.context["stderr"] == (warnings + error).strip()
    assert error in str(excinfo.value)


def test_rebuild_produces_identical_archive(tmp_path: Path, fake_runner) -> None:
    spec = _spec(tmp_path)
    builder = CBuilder(ar_mode="crsD", runner=fake_runner)

    first = builder.build(spec).path.read_bytes()
    second = builder.build(spec).path.read_bytes()

    assert first == second
