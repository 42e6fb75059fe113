# backend/tests/test_media.py
import base64
import struct

import pytest

from omnipedia.errors import MissingPayloadError
from omnipedia.services.audio import WAV_HEADER_SIZE, pcm_to_wav, strip_data_url, to_data_url, wav_header
from omnipedia.services.file_manager import FileManager


def test_wav_header_layout():
    header = wav_header(960)
    assert len(header) == WAV_HEADER_SIZE
    riff, riff_size, wave, fmt, fmt_size, audio_format, channels, rate, byte_rate, align, bits, data, size = (
        struct.unpack("<4sI4s4sIHHIIHH4sI", header)
    )
    assert (riff, wave, fmt, data) == (b"RIFF", b"WAVE", b"fmt ", b"data")
    assert riff_size == 36 + 960
    assert (audio_format, channels, rate, bits) == (1, 1, 24000, 16)
    assert byte_rate == 48000
    assert align == 2
    assert size == 960


def test_pcm_to_wav_prefixes_header():
    pcm = b"\x00\x01" * 10
    wav = pcm_to_wav(pcm, sample_rate=16000)
    assert wav[WAV_HEADER_SIZE:] == pcm
    assert struct.unpack_from("<I", wav, 24)[0] == 16000


def test_data_url_helpers():
    url = to_data_url(b"jpeg-bytes", "image/jpeg")
    assert url == "data:image/jpeg;base64," + base64.b64encode(b"jpeg-bytes").decode()
    assert strip_data_url(url) == ("image/jpeg", b"jpeg-bytes")


def test_bare_base64_is_assumed_png():
    assert strip_data_url(base64.b64encode(b"raw").decode()) == ("image/png", b"raw")


def test_empty_payload_is_rejected():
    with pytest.raises(MissingPayloadError):
        strip_data_url("data:image/png;base64,")


def test_file_manager_saves_per_item(tmp_path):
    manager = FileManager(tmp_path)
    video = manager.save_video("123", b"mp4")
    audio = manager.save_audio("123", b"wav")
    assert video == tmp_path.resolve() / "123" / "video.mp4"
    assert audio.read_bytes() == b"wav"
    assert manager.resolve_asset("123", "video.mp4") == video
    assert manager.resolve_asset("123", "missing.mp4") is None


def test_file_manager_blocks_path_traversal(tmp_path):
    manager = FileManager(tmp_path / "media")
    with pytest.raises(ValueError):
        manager.get_item_dir("../escape")
    assert manager.resolve_asset("123", "../../secret") is None
    assert manager.resolve_asset("..", "anything") is None


def test_delete_item_assets(tmp_path):
    manager = FileManager(tmp_path)
    manager.save_audio("123", b"wav")
    assert manager.delete_item_assets("123") is True
    assert manager.delete_item_assets("123") is False
    assert manager.resolve_asset("123", "narration.wav") is None
