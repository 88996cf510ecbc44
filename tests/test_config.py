import json
from pathlib import Path

import pytest

from mac_packager import config as config_mod
from mac_packager.errors import ConfigError


def _make_project(root: Path, *, project: dict | None = None, env_text: str = "") -> None:
    (root / "electron").mkdir(parents=True)
    (root / "electron" / "wire.json").write_text(
        json.dumps(project if project is not None else {"name": "Wire", "version": "3.20"})
    )
    (root / ".env.defaults").write_text(env_text)
    (root / "resources" / "macos").mkdir(parents=True)
    (root / "resources" / "macos" / "Info.plist.json").write_text(
        json.dumps({"ElectronTeamID": "TEAM", "NSPrincipalClass": "AtomApplication"})
    )


def test_export_compliance_code_adds_encryption_entries(tmp_path) -> None:
    _make_project(tmp_path)

    cfg, options = config_mod.resolve_config(
        project_root=str(tmp_path), environ={"APPLE_EXPORT_COMPLIANCE_CODE": "E123"}
    )

    assert cfg.plist_entries["ITSAppUsesNonExemptEncryption"] is True
    assert cfg.plist_entries["ITSEncryptionExportComplianceCode"] == "E123"
    assert options.extend_info["ElectronTeamID"] == "TEAM"


def test_no_export_compliance_code_leaves_entries_untouched(tmp_path) -> None:
    _make_project(tmp_path)

    cfg, _ = config_mod.resolve_config(project_root=str(tmp_path), environ={})

    assert "ITSAppUsesNonExemptEncryption" not in cfg.plist_entries
    assert "ITSEncryptionExportComplianceCode" not in cfg.plist_entries


def test_bundle_id_from_environment(tmp_path) -> None:
    _make_project(tmp_path)

    cfg, options = config_mod.resolve_config(
        project_root=str(tmp_path), environ={"MACOS_BUNDLE_ID": "com.example.app"}
    )

    assert cfg.macos.bundle_id == "com.example.app"
    assert options.app_bundle_id == "com.example.app"
    assert options.helper_bundle_id == "com.example.app.helper"


def test_bundle_id_default_when_env_empty(tmp_path) -> None:
    _make_project(tmp_path)

    cfg, _ = config_mod.resolve_config(project_root=str(tmp_path), environ={"MACOS_BUNDLE_ID": ""})

    assert cfg.macos.bundle_id == "com.wearezeta.zclient.mac"


def test_env_file_values_are_overridden_by_process_env(tmp_path) -> None:
    _make_project(
        tmp_path,
        env_text="MACOS_BUNDLE_ID=com.from.file\nMACOS_CERTIFICATE_NAME_INSTALLER=Installer\n",
    )

    cfg, _ = config_mod.resolve_config(
        project_root=str(tmp_path), environ={"MACOS_BUNDLE_ID": "com.from.env"}
    )

    assert cfg.macos.bundle_id == "com.from.env"
    assert cfg.macos.cert_name_installer == "Installer"


def test_project_json_wins_over_environment_for_common_fields(tmp_path) -> None:
    _make_project(tmp_path, project={"name": "FromJson", "customKey": [1, 2]})

    cfg, options = config_mod.resolve_config(
        project_root=str(tmp_path),
        environ={"APP_NAME": "FromEnv", "APP_VERSION": "9.9", "BUILD_NUMBER": "42"},
    )

    assert cfg.common.name == "FromJson"
    assert cfg.common.version == "9.9"
    assert cfg.common.build_number == "42"
    assert cfg.common.extra == {"customKey": [1, 2]}
    assert cfg.common.to_json()["customKey"] == [1, 2]
    assert options.name == "FromJson"
    assert options.protocols[0].name == "FromJson Core Protocol"


def test_build_number_normalized(tmp_path) -> None:
    _make_project(tmp_path, project={"buildNumber": "abc"})

    cfg, _ = config_mod.resolve_config(project_root=str(tmp_path), environ={})

    assert cfg.common.build_number == "0"


def test_store_build_signs_with_application_certificate(tmp_path) -> None:
    _make_project(tmp_path)

    _, options = config_mod.resolve_config(
        project_root=str(tmp_path),
        environ={"MACOS_CERTIFICATE_NAME_APPLICATION": "App Cert"},
    )

    assert options.platform == "mas"
    assert options.osx_sign is not None
    assert options.osx_sign.identity == "App Cert"
    assert options.osx_sign.hardened_runtime is False
    assert options.osx_sign.entitlements.endswith("parent.plist")
    assert options.osx_sign.entitlements_inherit.endswith("child.plist")
    assert options.osx_notarize is None


def test_manual_store_build_has_no_sign_options(tmp_path) -> None:
    _make_project(tmp_path)

    _, options = config_mod.resolve_config(
        project_root=str(tmp_path),
        sign_manually=True,
        environ={"MACOS_CERTIFICATE_NAME_APPLICATION": "App Cert"},
    )

    assert options.osx_sign is None
    assert options.osx_notarize is None


def test_notarize_uses_notarization_certificate(tmp_path) -> None:
    _make_project(tmp_path)

    _, options = config_mod.resolve_config(
        project_root=str(tmp_path),
        should_notarize=True,
        environ={
            "MACOS_CERTIFICATE_NAME_APPLICATION": "App Cert",
            "MACOS_CERTIFICATE_NAME_NOTARIZATION": "Dev ID",
            "MACOS_NOTARIZE_APPLE_ID": "me@example.com",
            "MACOS_NOTARIZE_APPLE_PASSWORD": "secret",
        },
    )

    assert options.platform == "darwin"
    assert options.osx_sign is not None
    assert options.osx_sign.identity == "Dev ID"
    assert options.osx_sign.hardened_runtime is True
    assert options.osx_notarize is not None
    assert options.osx_notarize.apple_id == "me@example.com"
    assert options.osx_notarize.apple_id_password == "secret"


def test_notarize_without_notarization_certificate_raises_config_error(tmp_path) -> None:
    _make_project(tmp_path)

    with pytest.raises(ConfigError) as e:
        config_mod.resolve_config(
            project_root=str(tmp_path),
            should_notarize=True,
            environ={"MACOS_CERTIFICATE_NAME_APPLICATION": "App Cert"},
        )
    assert "MACOS_CERTIFICATE_NAME_NOTARIZATION" in str(e.value)


def test_no_application_certificate_means_no_sign_options(tmp_path) -> None:
    _make_project(tmp_path)

    _, options = config_mod.resolve_config(project_root=str(tmp_path), environ={})

    assert options.osx_sign is None


def test_electron_mirror(tmp_path) -> None:
    _make_project(tmp_path)

    _, options = config_mod.resolve_config(
        project_root=str(tmp_path),
        environ={"MACOS_ELECTRON_MIRROR_URL": "https://mirror.example.com/"},
    )

    assert options.download_mirror == "https://mirror.example.com/"


def test_invalid_project_json_raises_config_error(tmp_path) -> None:
    _make_project(tmp_path)
    (tmp_path / "electron" / "wire.json").write_text("{not json")

    with pytest.raises(ConfigError):
        config_mod.resolve_config(project_root=str(tmp_path), environ={})


def test_missing_project_json_raises_file_not_found(tmp_path) -> None:
    _make_project(tmp_path)

    with pytest.raises(FileNotFoundError):
        config_mod.resolve_config("missing.json", project_root=str(tmp_path), environ={})


def test_missing_env_file_raises_file_not_found(tmp_path) -> None:
    _make_project(tmp_path)
    (tmp_path / ".env.defaults").unlink()

    with pytest.raises(FileNotFoundError):
        config_mod.resolve_config(project_root=str(tmp_path), environ={})


def test_resolve_config_does_not_touch_inputs(tmp_path) -> None:
    _make_project(tmp_path, env_text="APP_NAME=Wire\n")
    files = [
        tmp_path / "electron" / "wire.json",
        tmp_path / ".env.defaults",
        tmp_path / "resources" / "macos" / "Info.plist.json",
    ]
    before = [f.read_bytes() for f in files]

    config_mod.resolve_config(
        project_root=str(tmp_path), environ={"APPLE_EXPORT_COMPLIANCE_CODE": "E123"}
    )

    assert [f.read_bytes() for f in files] == before
