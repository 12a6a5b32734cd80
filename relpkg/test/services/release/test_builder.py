from __future__ import annotations

import threading
import zipfile
from pathlib import Path

import pytest

import relpkg.services.release.builder as builder_mod
from relpkg.core.config import Config, ReleaseConfig
from relpkg.core.result import Err, Ok
from relpkg.output.console import MockConsole
from relpkg.services.release.builder import ReleasePackageBuilder, find_spec
from relpkg.test.services.release._fixtures import create_nupkg, entry_names, nuspec_xml, read_entry


def _config(tmp_path: Path) -> Config:
    return Config(release=ReleaseConfig(temp_root=tmp_path / "work", retry_delay=0.0))


def test_build_strips_dependencies_and_renders_notes(tmp_path: Path) -> None:
    pkg = create_nupkg(
        tmp_path / "MyApp.1.0.0.nupkg",
        dependencies="",
        release_notes="Hello",
    )
    out = tmp_path / "out" / "MyApp-1.0.0-full.nupkg"

    result = ReleasePackageBuilder(pkg, config=_config(tmp_path)).build(out)

    assert result == Ok(out)
    spec = read_entry(out, "MyApp.nuspec")
    assert "dependencies" not in spec
    assert "<![CDATA[\n<p>Hello</p>\n]]>" in spec
    assert "&lt;p&gt;" not in spec


def test_build_keeps_content_and_merges_content_types(tmp_path: Path) -> None:
    pkg = create_nupkg(tmp_path / "MyApp.1.0.0.nupkg", extra={"lib/net45/data%20file.json": b"{}"})
    out = tmp_path / "MyApp-full.nupkg"

    result = ReleasePackageBuilder(pkg, config=_config(tmp_path)).build(out)

    assert isinstance(result, Ok)
    names = entry_names(out)
    assert "lib/net45/MyApp.exe" in names
    assert "lib/net45/data file.json" in names
    types = read_entry(out, "[Content_Types].xml")
    assert 'Extension="dll"' in types
    assert 'Extension="json"' in types
    assert 'Extension="bsdiff"' in types
    assert 'Extension="shasum"' in types


def test_second_build_returns_cached_path_without_work(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    pkg = create_nupkg(tmp_path / "MyApp.1.0.0.nupkg")
    out = tmp_path / "MyApp-full.nupkg"
    builder = ReleasePackageBuilder(pkg, config=_config(tmp_path))

    first = builder.build(out)
    assert builder.state == "built"

    calls: list[str] = []

    def fail_extract(*_args: object, **_kwargs: object) -> None:
        calls.append("extract")
        raise AssertionError("must not extract again")

    def fail_pack(*_args: object, **_kwargs: object) -> None:
        calls.append("pack")
        raise AssertionError("must not pack again")

    monkeypatch.setattr(builder_mod, "extract_archive", fail_extract)
    monkeypatch.setattr(builder_mod, "pack_directory", fail_pack)

    second = builder.build(tmp_path / "elsewhere.nupkg")

    assert second == first == Ok(out)
    assert builder.release_package_file == out
    assert calls == []
    assert not (tmp_path / "elsewhere.nupkg").exists()


def test_multiple_frameworks_rejected_before_working_tree(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    pkg = create_nupkg(tmp_path / "MyApp.1.0.0.nupkg", frameworks=("net45", "net6.0"))
    out = tmp_path / "MyApp-full.nupkg"
    acquired: list[object] = []
    real = builder_mod.scoped_temp_dir

    def tracking(**kwargs: object):  # type: ignore[no-untyped-def]
        acquired.append(kwargs)
        return real(**kwargs)  # type: ignore[arg-type]

    monkeypatch.setattr(builder_mod, "scoped_temp_dir", tracking)

    builder = ReleasePackageBuilder(pkg, config=_config(tmp_path))
    result = builder.build(out)

    assert isinstance(result, Err)
    assert result.error.kind == "multiple_target_frameworks"
    assert "net45; net6.0" in result.error.message
    assert acquired == []
    assert not (tmp_path / "work").exists()
    assert not out.exists()
    assert builder.state == "failed"


def test_dependencies_rejected_naming_input_file(tmp_path: Path) -> None:
    pkg = create_nupkg(
        tmp_path / "MyApp.1.0.0.nupkg",
        dependencies='<group targetFramework="net45"><dependency id="Foo" version="1.0" /></group>',
    )

    result = ReleasePackageBuilder(pkg, config=_config(tmp_path)).build(tmp_path / "o.nupkg")

    assert isinstance(result, Err)
    assert result.error.kind == "dependencies_not_supported"
    assert "MyApp.1.0.0.nupkg" in result.error.message


def test_failed_build_is_terminal(tmp_path: Path) -> None:
    pkg = create_nupkg(tmp_path / "MyApp.nupkg", version="1.0")
    builder = ReleasePackageBuilder(pkg, config=_config(tmp_path))

    first = builder.build(tmp_path / "o.nupkg")
    second = builder.build(tmp_path / "o.nupkg")

    assert isinstance(first, Err)
    assert first.error.kind == "non_semver_version"
    assert second is first


def test_test_mode_accepts_non_semver_version(tmp_path: Path) -> None:
    pkg = create_nupkg(tmp_path / "MyApp.nupkg", version="1.0.0.0")

    result = ReleasePackageBuilder(pkg, test_mode=True, config=_config(tmp_path)).build(
        tmp_path / "o.nupkg"
    )

    assert isinstance(result, Ok)


def test_post_process_hook_sees_normalized_tree(tmp_path: Path) -> None:
    pkg = create_nupkg(tmp_path / "MyApp.nupkg", dependencies="")
    seen: dict[str, object] = {}

    def hook(work_dir: Path) -> None:
        seen["dir"] = work_dir
        seen["spec"] = (work_dir / "MyApp.nuspec").read_text(encoding="utf-8")
        (work_dir / "lib" / "net45" / "MyApp.exe.sig").write_bytes(b"signed")

    out = tmp_path / "o.nupkg"
    result = ReleasePackageBuilder(pkg, config=_config(tmp_path)).build(out, post_process=hook)

    assert isinstance(result, Ok)
    assert "dependencies" not in str(seen["spec"])
    assert "lib/net45/MyApp.exe.sig" in entry_names(out)
    assert not Path(str(seen["dir"])).exists()


def test_working_tree_removed_when_hook_raises(tmp_path: Path) -> None:
    pkg = create_nupkg(tmp_path / "MyApp.nupkg")
    seen: list[Path] = []

    def hook(work_dir: Path) -> None:
        seen.append(work_dir)
        raise RuntimeError("signing failed")

    out = tmp_path / "o.nupkg"
    builder = ReleasePackageBuilder(pkg, config=_config(tmp_path))
    with pytest.raises(RuntimeError, match="signing failed"):
        builder.build(out, post_process=hook)

    assert seen and not seen[0].exists()
    assert not out.exists()
    assert list((tmp_path / "work").iterdir()) == []
    assert builder.state == "failed"


def test_hook_failure_is_terminal(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    pkg = create_nupkg(tmp_path / "MyApp.nupkg")
    builder = ReleasePackageBuilder(pkg, config=_config(tmp_path))

    def hook(_work_dir: Path) -> None:
        raise RuntimeError("signing failed")

    with pytest.raises(RuntimeError) as first:
        builder.build(tmp_path / "o.nupkg", post_process=hook)

    calls: list[str] = []
    monkeypatch.setattr(builder_mod, "extract_archive", lambda *_a, **_k: calls.append("extract"))

    with pytest.raises(RuntimeError) as second:
        builder.build(tmp_path / "o.nupkg")

    assert second.value is first.value
    assert calls == []
    assert builder.release_package_file is None


def test_extract_and_pack_run_on_worker_thread(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    pkg = create_nupkg(tmp_path / "MyApp.nupkg")
    threads: dict[str, str] = {}
    real_extract = builder_mod.extract_archive
    real_pack = builder_mod.pack_directory

    def extract(*args: object, **kwargs: object):  # type: ignore[no-untyped-def]
        threads["extract"] = threading.current_thread().name
        return real_extract(*args, **kwargs)  # type: ignore[arg-type]

    def pack(*args: object, **kwargs: object):  # type: ignore[no-untyped-def]
        threads["pack"] = threading.current_thread().name
        return real_pack(*args, **kwargs)  # type: ignore[arg-type]

    monkeypatch.setattr(builder_mod, "extract_archive", extract)
    monkeypatch.setattr(builder_mod, "pack_directory", pack)

    result = ReleasePackageBuilder(pkg, config=_config(tmp_path)).build(tmp_path / "o.nupkg")

    assert isinstance(result, Ok)
    assert threads["extract"].startswith("relpkg-io")
    assert threads["pack"].startswith("relpkg-io")
    assert threading.current_thread().name != threads["pack"]


def test_unsafe_entry_aborts_without_output(tmp_path: Path) -> None:
    pkg = create_nupkg(tmp_path / "MyApp.nupkg", extra={"%2e%2e/secret": b"x"})
    out = tmp_path / "o.nupkg"

    result = ReleasePackageBuilder(pkg, config=_config(tmp_path)).build(out)

    assert isinstance(result, Err)
    assert result.error.kind == "unsafe_entry"
    assert not out.exists()
    assert not (tmp_path / "secret").exists()
    assert list((tmp_path / "work").iterdir()) == []


def test_render_notes_none_leaves_notes_text(tmp_path: Path) -> None:
    pkg = create_nupkg(tmp_path / "MyApp.nupkg", release_notes="*bold*")
    out = tmp_path / "o.nupkg"

    result = ReleasePackageBuilder(pkg, config=_config(tmp_path)).build(out, render_notes=None)

    assert isinstance(result, Ok)
    assert "<releaseNotes>*bold*</releaseNotes>" in read_entry(out, "MyApp.nuspec")


def test_custom_renderer_and_console_diagnostics(tmp_path: Path) -> None:
    pkg = create_nupkg(tmp_path / "MyApp.nupkg", release_notes=None)
    console = MockConsole()

    result = ReleasePackageBuilder(pkg, config=_config(tmp_path), console=console).build(
        tmp_path / "o.nupkg", render_notes=lambda s: f"<b>{s}</b>"
    )

    assert isinstance(result, Ok)
    assert console.find("No release notes found in MyApp.nuspec")
    assert console.find("Creating release package")


def test_find_spec_rejects_multiple_specs(tmp_path: Path) -> None:
    (tmp_path / "a.nuspec").write_text("<package/>", encoding="utf-8")
    (tmp_path / "b.nuspec").write_text("<package/>", encoding="utf-8")

    result = find_spec(tmp_path)

    assert isinstance(result, Err)
    assert result.error.kind == "multiple_specs"
    assert result.error.hint == "a.nuspec; b.nuspec"


def test_find_spec_ignores_nested_specs(tmp_path: Path) -> None:
    (tmp_path / "MyApp.nuspec").write_text("<package/>", encoding="utf-8")
    (tmp_path / "content" / "templates").mkdir(parents=True)
    (tmp_path / "content" / "templates" / "Other.nuspec").write_text("<package/>", encoding="utf-8")

    assert find_spec(tmp_path) == Ok(tmp_path / "MyApp.nuspec")


def test_find_spec_missing(tmp_path: Path) -> None:
    result = find_spec(tmp_path)
    assert isinstance(result, Err)
    assert result.error.kind == "spec_not_found"


def test_output_is_valid_zip(tmp_path: Path) -> None:
    pkg = create_nupkg(tmp_path / "MyApp.nupkg")
    out = tmp_path / "o.nupkg"

    ReleasePackageBuilder(pkg, config=_config(tmp_path)).build(out)

    with zipfile.ZipFile(out) as zf:
        assert zf.testzip() is None


def test_nested_spec_content_is_kept_untouched(tmp_path: Path) -> None:
    template = nuspec_xml(package_id="Other", dependencies='<dependency id="Foo" />').encode()
    pkg = create_nupkg(
        tmp_path / "MyApp.nupkg",
        extra={"content/templates/Other.nuspec": template},
    )
    out = tmp_path / "o.nupkg"

    result = ReleasePackageBuilder(pkg, config=_config(tmp_path)).build(out)

    assert isinstance(result, Ok)
    assert '<dependency id="Foo" />' in read_entry(out, "content/templates/Other.nuspec")


def test_missing_manifest_declares_relationships(tmp_path: Path) -> None:
    pkg = create_nupkg(tmp_path / "MyApp.nupkg", content_types=None)
    out = tmp_path / "o.nupkg"

    result = ReleasePackageBuilder(pkg, config=_config(tmp_path)).build(out)

    assert isinstance(result, Ok)
    types = read_entry(out, "[Content_Types].xml")
    assert 'Extension="rels"' in types
    assert 'Extension="nuspec"' in types


def test_framework_assembly_long_name_is_single_target(tmp_path: Path) -> None:
    pkg = create_nupkg(
        tmp_path / "MyApp.nupkg",
        framework_assemblies=(
            '<frameworkAssembly assemblyName="System.Xml" targetFramework=".NETFramework4.5" />'
        ),
    )

    result = ReleasePackageBuilder(pkg, config=_config(tmp_path)).build(tmp_path / "o.nupkg")

    assert isinstance(result, Ok)


def test_dependency_group_framework_reports_dependencies(tmp_path: Path) -> None:
    pkg = create_nupkg(
        tmp_path / "MyApp.nupkg",
        dependencies='<group targetFramework="net46"><dependency id="Foo" version="1.0" /></group>',
    )

    result = ReleasePackageBuilder(pkg, config=_config(tmp_path)).build(tmp_path / "o.nupkg")

    assert isinstance(result, Err)
    assert result.error.kind == "dependencies_not_supported"
