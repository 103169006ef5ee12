"""Tests for termki.terminal_image."""

from __future__ import annotations

import base64
import math
import subprocess
from pathlib import Path
from typing import Iterator

import pytest

from termki import terminal_image
from termki.terminal_image import (
    KITTY_CHUNK_SIZE,
    ITerm2Encoder,
    KittyEncoder,
    ResolvedGeometry,
    TerminalCapabilities,
    compute_geometry,
    delete_all_kitty_images,
    detect_capabilities,
    encode_iterm2,
    encode_kitty,
    encoder_for,
    get_capabilities,
    image_fallback,
    read_image_dimensions,
    reset_capabilities_cache,
    resolve_geometry,
)

_TERMINAL_VARS = (
    "TERM",
    "TERM_PROGRAM",
    "KITTY_PID",
    "KITTY_WINDOW_ID",
    "WEZTERM_EXECUTABLE",
)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[pytest.MonkeyPatch]:
    for name in _TERMINAL_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_capabilities_cache()
    yield monkeypatch
    reset_capabilities_cache()


def _fake_identify(stdout: str, returncode: int = 0):
    calls: list[list[str]] = []

    def run(args, **kwargs):
        calls.append(list(args))
        return subprocess.CompletedProcess(args, returncode, stdout=stdout, stderr="")

    run.calls = calls  # type: ignore[attr-defined]
    return run


def _payload(b64: str) -> str:
    """Extract the data segment of a kitty chunk."""
    return b64.split(";", 1)[1][: -len("\x1b\\")]


# ---------------------------------------------------------------------------
# Capability detection
# ---------------------------------------------------------------------------


class TestDetectCapabilities:
    def test_term_containing_kitty(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("TERM", "xterm-kitty")
        caps = detect_capabilities()
        assert caps.images == "kitty"
        assert caps.terminal == "kitty"

    def test_kitty_pid(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("TERM", "xterm-256color")
        clean_env.setenv("KITTY_PID", "1234")
        assert detect_capabilities().images == "kitty"

    def test_kitty_window_id(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("KITTY_WINDOW_ID", "1")
        assert detect_capabilities().images == "kitty"

    def test_wezterm_executable(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("WEZTERM_EXECUTABLE", "/usr/bin/wezterm-gui")
        caps = detect_capabilities()
        assert caps.images == "iterm2"
        assert caps.terminal == "wezterm"

    def test_iterm_app(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("TERM_PROGRAM", "iTerm.app")
        caps = detect_capabilities()
        assert caps.images == "iterm2"
        assert caps.terminal == "iterm2"

    def test_kitty_wins_over_wezterm(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("KITTY_PID", "1")
        clean_env.setenv("WEZTERM_EXECUTABLE", "/usr/bin/wezterm-gui")
        assert detect_capabilities().images == "kitty"

    def test_wezterm_wins_over_iterm(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("WEZTERM_EXECUTABLE", "/usr/bin/wezterm-gui")
        clean_env.setenv("TERM_PROGRAM", "iTerm.app")
        assert detect_capabilities().terminal == "wezterm"

    def test_apple_terminal_is_unsupported(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("TERM_PROGRAM", "Apple_Terminal")
        caps = detect_capabilities()
        assert caps.images is None
        assert caps.terminal == "unsupported"
        assert not caps.supports_images

    def test_empty_environment_is_unsupported(self, clean_env: pytest.MonkeyPatch) -> None:
        assert detect_capabilities() == TerminalCapabilities(images=None, terminal="unsupported")


class TestCapabilityCache:
    def test_cached_value_ignores_later_env_changes(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("KITTY_PID", "42")
        first = get_capabilities()
        clean_env.delenv("KITTY_PID")
        clean_env.setenv("TERM_PROGRAM", "iTerm.app")
        assert get_capabilities() is first
        assert get_capabilities().images == "kitty"

    def test_reset_forces_redetection(self, clean_env: pytest.MonkeyPatch) -> None:
        assert get_capabilities().images is None
        clean_env.setenv("TERM_PROGRAM", "iTerm.app")
        reset_capabilities_cache()
        assert get_capabilities().images == "iterm2"


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------


class TestComputeGeometry:
    def test_narrow_image_is_not_upscaled(self) -> None:
        geo = compute_geometry(200, 100)
        assert geo.display_width_px == 200
        assert geo.display_height_px == 100

    def test_exactly_at_max_width(self) -> None:
        geo = compute_geometry(480, 240)
        assert geo.display_width_px == 480
        assert geo.display_height_px == 240

    def test_wide_image_is_clamped_and_aspect_locked(self) -> None:
        geo = compute_geometry(960, 300)
        assert geo.display_width_px == 480
        assert geo.display_height_px == 150

    def test_aspect_ratio_within_rounding(self) -> None:
        geo = compute_geometry(1001, 777)
        assert geo.display_width_px == 480
        expected = 777 * 480 / 1001
        assert abs(geo.display_height_px - expected) < 1

    def test_rows_consumed(self) -> None:
        geo = compute_geometry(160, 100)
        assert geo.rows_consumed == math.ceil(100 / 16) + 1

    def test_rows_consumed_at_least_one_for_tiny_image(self) -> None:
        geo = compute_geometry(2000, 1)
        assert geo.display_height_px == 0
        assert geo.rows_consumed >= 1

    def test_custom_cell_budget(self) -> None:
        geo = compute_geometry(1000, 500, max_width_cells=10, px_per_cell=10)
        assert geo.display_width_px == 100
        assert geo.display_height_px == 50

    def test_source_dimensions_are_kept(self) -> None:
        geo = compute_geometry(960, 300)
        assert (geo.source_width_px, geo.source_height_px) == (960, 300)


class TestResolveGeometry:
    def test_resolves_from_identify(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        image = tmp_path / "a.png"
        image.write_bytes(b"\x89PNG")
        run = _fake_identify("640 320")
        monkeypatch.setattr(subprocess, "run", run)

        geo = resolve_geometry(str(image))

        assert geo == ResolvedGeometry(640, 320, 480, 240, 16)
        assert run.calls[0][:3] == ["identify", "-format", "%w %h"]
        assert run.calls[0][-1] == str(image)

    def test_missing_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        run = _fake_identify("640 320")
        monkeypatch.setattr(subprocess, "run", run)
        assert resolve_geometry(str(tmp_path / "missing.png")) is None
        assert run.calls == []

    def test_unparseable_output(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        image = tmp_path / "a.png"
        image.write_bytes(b"x")
        monkeypatch.setattr(subprocess, "run", _fake_identify("garbage"))
        assert resolve_geometry(str(image)) is None

    def test_identify_failure(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        image = tmp_path / "a.png"
        image.write_bytes(b"x")
        monkeypatch.setattr(subprocess, "run", _fake_identify("640 320", returncode=1))
        assert resolve_geometry(str(image)) is None

    def test_identify_not_installed(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        image = tmp_path / "a.png"
        image.write_bytes(b"x")

        def run(args, **kwargs):
            raise FileNotFoundError("identify")

        monkeypatch.setattr(subprocess, "run", run)
        assert read_image_dimensions(str(image)) is None
        assert resolve_geometry(str(image)) is None

    def test_zero_width(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        image = tmp_path / "a.png"
        image.write_bytes(b"x")
        monkeypatch.setattr(subprocess, "run", _fake_identify("0 10"))
        assert resolve_geometry(str(image)) is None

    def test_first_frame_of_animation(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        image = tmp_path / "a.gif"
        image.write_bytes(b"x")
        monkeypatch.setattr(subprocess, "run", _fake_identify("100 50100 50"))
        geo = resolve_geometry(str(image))
        assert geo is not None
        assert geo.source_width_px == 100


# ---------------------------------------------------------------------------
# Kitty encoding
# ---------------------------------------------------------------------------


class TestEncodeKitty:
    def test_single_chunk(self) -> None:
        chunks = encode_kitty("QUJD", width_px=10, height_px=5, image_id=7)
        assert chunks == ["\x1b_Ga=T,f=100,i=7,s=10,v=5,q=2,m=0;QUJD\x1b\\"]

    @pytest.mark.parametrize(
        "length", [1, KITTY_CHUNK_SIZE, KITTY_CHUNK_SIZE + 1, 3 * KITTY_CHUNK_SIZE + 17]
    )
    def test_chunk_count_and_reassembly(self, length: int) -> None:
        data = ("ABCD" * (length // 4 + 1))[:length]
        chunks = encode_kitty(data, width_px=1, height_px=1, image_id=99)

        assert len(chunks) == math.ceil(length / KITTY_CHUNK_SIZE)
        assert "".join(_payload(c) for c in chunks) == data

    def test_only_final_chunk_clears_more_flag(self) -> None:
        data = "A" * (2 * KITTY_CHUNK_SIZE + 10)
        chunks = encode_kitty(data, width_px=1, height_px=1, image_id=5)
        assert [("m=1;" in c) for c in chunks] == [True, True, False]
        assert "m=0;" in chunks[-1]

    def test_metadata_only_on_first_chunk(self) -> None:
        data = "A" * (KITTY_CHUNK_SIZE + 1)
        first, second = encode_kitty(data, width_px=320, height_px=200, image_id=5)
        assert first.startswith("\x1b_Ga=T,f=100,i=5,s=320,v=200,q=2,m=1;")
        assert second.startswith("\x1b_Gi=5,m=0;")

    def test_chunks_never_exceed_chunk_size(self) -> None:
        data = "B" * (KITTY_CHUNK_SIZE * 2 + 1)
        for chunk in encode_kitty(data, width_px=1, height_px=1, image_id=1):
            assert len(_payload(chunk)) <= KITTY_CHUNK_SIZE


class TestKittyEncoder:
    def test_sequences(self, tmp_path: Path) -> None:
        image = tmp_path / "a.png"
        image.write_bytes(b"\x89PNG-data")
        geo = compute_geometry(100, 80)

        encoded = KittyEncoder().encode(str(image), geo, 12)

        assert encoded.sequences[0] == delete_all_kitty_images()
        assert encoded.sequences[1] == "\x1b[12;1H"
        payload = "".join(_payload(c) for c in encoded.sequences[2:])
        assert payload == base64.b64encode(b"\x89PNG-data").decode()
        assert encoded.rows == geo.rows_consumed

    def test_without_reset(self, tmp_path: Path) -> None:
        image = tmp_path / "a.png"
        image.write_bytes(b"x")
        encoded = KittyEncoder().encode(str(image), compute_geometry(10, 10), 3, reset=False)
        assert delete_all_kitty_images() not in encoded.sequences
        assert encoded.sequences[0] == "\x1b[3;1H"

    def test_ids_are_random_and_shared_across_chunks(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        image = tmp_path / "a.png"
        image.write_bytes(b"z" * 5000)
        monkeypatch.setattr(terminal_image, "allocate_image_id", lambda: 123456)
        encoded = KittyEncoder().encode(str(image), compute_geometry(10, 10), 1)
        chunks = encoded.sequences[2:]
        assert len(chunks) == 2
        assert all("i=123456" in c for c in chunks)

    def test_allocated_ids_have_wide_range(self) -> None:
        ids = {terminal_image.allocate_image_id() for _ in range(50)}
        assert all(1 <= i <= 0xFFFFFFFE for i in ids)
        assert len(ids) > 1

    def test_unreadable_file_is_noop(self, tmp_path: Path) -> None:
        encoded = KittyEncoder().encode(str(tmp_path / "nope.png"), compute_geometry(10, 10), 1)
        assert encoded.sequences == []
        assert encoded.rows == 0

    def test_clear(self) -> None:
        assert KittyEncoder().clear() == ["\x1b_Ga=d,d=A\x1b\\"]


# ---------------------------------------------------------------------------
# iTerm2 encoding
# ---------------------------------------------------------------------------


class TestEncodeIterm2:
    def test_format(self) -> None:
        seq = encode_iterm2("QUJD", width_px=100, height_px=50)
        assert seq == (
            "\x1b]1337;File=inline=1;width=100px;height=50px;"
            "preserveAspectRatio=1:QUJD\x07"
        )

    def test_name_is_base64(self) -> None:
        seq = encode_iterm2("QUJD", width_px=1, height_px=1, name="a.png")
        assert "name=" + base64.b64encode(b"a.png").decode() in seq


class TestITerm2Encoder:
    def test_sequences(self, tmp_path: Path) -> None:
        image = tmp_path / "cat.png"
        image.write_bytes(b"\x89PNG" * 3000)
        geo = compute_geometry(960, 480)

        encoded = ITerm2Encoder().encode(str(image), geo, 20)

        assert len(encoded.sequences) == 2
        assert encoded.sequences[0] == "\x1b[20;1H"
        body = encoded.sequences[1]
        assert body.startswith("\x1b]1337;File=")
        assert body.endswith("\x07")
        assert "width=480px;height=240px" in body
        # One unchunked payload
        assert body.split(":", 1)[1][:-1] == base64.b64encode(b"\x89PNG" * 3000).decode()
        assert "\x1b_G" not in body
        assert encoded.rows == geo.rows_consumed

    def test_unreadable_file_is_noop(self, tmp_path: Path) -> None:
        encoded = ITerm2Encoder().encode(str(tmp_path / "nope.png"), compute_geometry(10, 10), 1)
        assert encoded.sequences == []
        assert encoded.rows == 0

    def test_clear_is_empty(self) -> None:
        assert ITerm2Encoder().clear() == []


class TestEncoderFor:
    def test_kitty(self) -> None:
        assert isinstance(encoder_for(TerminalCapabilities("kitty", "kitty")), KittyEncoder)

    def test_iterm2_and_wezterm(self) -> None:
        assert isinstance(encoder_for(TerminalCapabilities("iterm2", "iterm2")), ITerm2Encoder)
        assert isinstance(encoder_for(TerminalCapabilities("iterm2", "wezterm")), ITerm2Encoder)

    def test_unsupported(self) -> None:
        assert encoder_for(TerminalCapabilities(None, "unsupported")) is None


def test_image_fallback() -> None:
    assert image_fallback("a.png") == "[Image: a.png]"
