import pytest

from conftest import read_archive
from delta.build import build_delta, parse_removed, profile_path, removed_manifest_path, render_removed
from delta.diff import diff_tables
from delta.errors import ArtifactIOError, TruncatedMemberError
from delta.fingerprint import fingerprint_archive
from delta.logs import DeltaLogger
from delta.types import DiffResult
from delta.verify import verify_delta

BASE_FILES = {
    "rootfs/etc/hosts": b"127.0.0.1 localhost\n",
    "rootfs/etc/motd": b"welcome\n",
    "rootfs/var/log/syslog": b"boot\n",
}


def _current_files():
    files = dict(BASE_FILES)
    files["rootfs/etc/motd"] = b"welcome back\n"
    files["rootfs/srv/new.txt"] = b"fresh"
    del files["rootfs/var/log/syslog"]
    return files


def _diff(make_archive):
    baseline = fingerprint_archive(make_archive("base.tar.zst", BASE_FILES))
    source = make_archive("current.tar.zst", _current_files())
    return source, diff_tables(baseline, fingerprint_archive(source))


def test_delta_contains_only_changed_members(make_archive, tmp_path):
    source, diff = _diff(make_archive)
    destination = tmp_path / "out" / "lxd-backup-web-M5-delta.tar.zst"

    result = build_delta(source, diff, destination, profile_name="default", profile_text="config: {}\n")

    assert result.built
    assert result.members_written == 2
    assert result.removed_listed == 1
    members = read_archive(destination)
    assert set(members) == {"rootfs/etc/motd", "rootfs/srv/new.txt"}
    current = _current_files()
    for name, payload in members.items():
        assert payload == current[name]


def test_delta_writes_sidecars(make_archive, tmp_path):
    source, diff = _diff(make_archive)
    destination = tmp_path / "lxd-backup-web-WD2-delta.tar.zst"

    build_delta(source, diff, destination, profile_name="web/prod", profile_text="limits: {}\n")

    manifest = removed_manifest_path(destination)
    assert manifest.read_text(encoding="utf-8") == "rootfs/var/log/syslog\n"
    sidecar = profile_path(destination, "web/prod")
    assert sidecar.name == "lxd-backup-web-WD2-delta.tar.zst.web_prod.profile"
    assert sidecar.read_text(encoding="utf-8") == "limits: {}\n"
    assert not list(tmp_path.glob("*.partial-*"))


def test_delta_keeps_source_compression(make_archive, tmp_path):
    source = make_archive("current.tar.gz", {"a": b"1", "b": b"2"}, compression="gzip")
    diff = DiffResult(changed=frozenset({"a"}))
    destination = tmp_path / "delta.tar.gz"

    build_delta(source, diff, destination, profile_name="default", profile_text="")

    assert destination.read_bytes()[:2] == b"\x1f\x8b"
    assert read_archive(destination) == {"a": b"1"}


def test_existing_delta_is_left_untouched(make_archive, tmp_path):
    source, diff = _diff(make_archive)
    destination = tmp_path / "delta.tar.zst"
    build_delta(source, diff, destination, profile_name="default", profile_text="")
    before = destination.read_bytes()

    other = make_archive("other.tar.zst", {"rootfs/etc/motd": b"different"})
    result = build_delta(other, diff, destination, profile_name="default", profile_text="")

    assert result.status == "exists"
    assert not result.built
    assert destination.read_bytes() == before


def test_removals_only_produce_empty_archive(make_archive, tmp_path):
    source = make_archive("current.tar.zst", {"kept": b"same"})
    diff = DiffResult(removed=frozenset({"gone/b", "gone/a"}))
    destination = tmp_path / "delta.tar.zst"

    result = build_delta(source, diff, destination, profile_name="default", profile_text="")

    assert result.members_written == 0
    assert read_archive(destination) == {}
    assert removed_manifest_path(destination).read_text(encoding="utf-8") == "gone/a\ngone/b\n"


def test_failed_build_leaves_no_artifacts(make_archive, tmp_path):
    source = make_archive("current.tar", {"big.bin": b"y" * 4000}, compression="none")
    source.write_bytes(source.read_bytes()[: 512 + 100])
    diff = DiffResult(added=frozenset({"big.bin"}))
    out_dir = tmp_path / "out"
    destination = out_dir / "delta.tar"
    logger = DeltaLogger(tmp_path / "work")

    with pytest.raises(TruncatedMemberError):
        build_delta(source, diff, destination, profile_name="default", profile_text="", logger=logger)

    assert list(out_dir.iterdir()) == []
    assert '"delta_failed"' in logger.log_path.read_text(encoding="utf-8")


def test_sidecar_failure_rolls_back_archive(make_archive, tmp_path):
    source, diff = _diff(make_archive)
    destination = tmp_path / "out" / "delta.tar.zst"
    profile_path(destination, "default").mkdir(parents=True)

    with pytest.raises(ArtifactIOError):
        build_delta(source, diff, destination, profile_name="default", profile_text="x")

    assert not destination.exists()
    assert not removed_manifest_path(destination).exists()
    assert not list(destination.parent.glob("*.partial-*"))


def test_removed_manifest_escapes_line_breaks_and_backslashes():
    rendered = render_removed({"rootfs/odd\nname", "rootfs/back\\slash"})

    assert rendered == "rootfs/back\\\\slash\nrootfs/odd\\nname\n"
    assert parse_removed(rendered) == {"rootfs/odd\nname", "rootfs/back\\slash"}


def test_delta_with_multiline_removed_path_verifies(make_archive, tmp_path):
    source = make_archive("current.tar.zst", {"rootfs/etc/motd": b"hi\n"})
    current = fingerprint_archive(source)
    diff = DiffResult(changed=frozenset({"rootfs/etc/motd"}), removed=frozenset({"rootfs/line\nbreak"}))
    destination = tmp_path / "lxd-backup-web-WD2-delta.tar.zst"

    result = build_delta(source, diff, destination, profile_name="default", profile_text="")

    assert result.removed_listed == 1
    assert removed_manifest_path(destination).read_text(encoding="utf-8") == "rootfs/line\\nbreak\n"
    verify_delta(destination, diff, current)
