import json
from pathlib import Path

import pytest

from mac_packager import cli


def _make_project(root: Path) -> None:
    (root / "package.json").write_text('{"name": "wire-desktop"}')
    (root / "electron").mkdir()
    (root / "electron" / "wire.json").write_text(json.dumps({"name": "Wire", "version": "3.20"}))
    (root / ".env.defaults").write_text("MACOS_BUNDLE_ID=com.example.app\n")
    (root / "resources" / "macos").mkdir(parents=True)
    (root / "resources" / "macos" / "Info.plist.json").write_text("{}")


def test_main_passes_resolved_config_to_build(monkeypatch, tmp_path) -> None:
    _make_project(tmp_path)
    monkeypatch.delenv("MACOS_BUNDLE_ID", raising=False)
    captured: dict = {}

    def fake_build(config, options, package_json, project_json, **kwargs):
        captured.update(
            config=config, options=options, package_json=package_json, project_json=project_json
        )
        captured.update(kwargs)
        return True

    monkeypatch.setattr(cli, "build_macos_wrapper", fake_build)

    rc = cli.main(["-C", str(tmp_path), "--notarize", "--timeout", "120"])

    assert rc == 0
    assert captured["config"].macos.bundle_id == "com.example.app"
    assert captured["options"].platform == "darwin"
    assert captured["package_json"] == "package.json"
    assert captured["project_json"] == "electron/wire.json"
    assert captured["should_notarize"] is True
    assert captured["sign_manually"] is False
    assert captured["timeout"] == 120.0


def test_main_returns_1_when_packaging_fails(monkeypatch, tmp_path) -> None:
    _make_project(tmp_path)
    monkeypatch.setattr(cli, "build_macos_wrapper", lambda *_a, **_kw: False)

    assert cli.main(["-C", str(tmp_path), "--manual-sign"]) == 1


def test_main_reports_invalid_project_json(monkeypatch, tmp_path) -> None:
    _make_project(tmp_path)
    (tmp_path / "electron" / "wire.json").write_text("[")
    monkeypatch.setattr(cli, "build_macos_wrapper", lambda *_a, **_kw: True)

    with pytest.raises(SystemExit) as e:
        cli.main(["-C", str(tmp_path)])
    assert "Invalid JSON" in str(e.value)


def test_main_reports_missing_env_file(monkeypatch, tmp_path) -> None:
    _make_project(tmp_path)
    monkeypatch.setattr(cli, "build_macos_wrapper", lambda *_a, **_kw: True)

    with pytest.raises(SystemExit) as e:
        cli.main(["-C", str(tmp_path), "-e", "missing.env"])
    assert "env file not found" in str(e.value)


def test_main_rejects_non_positive_timeout(tmp_path) -> None:
    with pytest.raises(SystemExit) as e:
        cli.main(["-C", str(tmp_path), "--timeout", "0"])
    assert "--timeout must be positive" in str(e.value)


def test_main_reports_missing_package_json(tmp_path) -> None:
    _make_project(tmp_path)
    (tmp_path / "package.json").unlink()

    with pytest.raises(SystemExit) as e:
        cli.main(["-C", str(tmp_path)])
    assert "Error:" in str(e.value)
    assert "package.json" in str(e.value)
    assert not (tmp_path / "package.json").exists()
