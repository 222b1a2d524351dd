"""Tests for the clipboard providers."""

import base64
import io
import subprocess
from unittest.mock import Mock, patch

from agent_console.interface import clipboard
from agent_console.interface.clipboard import (
    OSC52_MAX_BYTES, NativeProvider, OSC52Provider, create_provider,
)


class TestOSC52Provider:
    """Test the terminal escape sequence provider."""

    def test_writes_sequence(self):
        stream = io.StringIO()
        assert OSC52Provider(stream).copy("hi")
        assert stream.getvalue() == "\x1b]52;c;aGk=\x07"

    def test_empty_text_is_not_copied(self):
        stream = io.StringIO()
        assert not OSC52Provider(stream).copy("")
        assert stream.getvalue() == ""

    def test_large_payload_is_truncated(self):
        stream = io.StringIO()
        OSC52Provider(stream).copy("é" * OSC52_MAX_BYTES)

        encoded = stream.getvalue()[len("\x1b]52;c;"):-1]
        assert len(encoded) <= OSC52_MAX_BYTES
        assert set(base64.b64decode(encoded).decode("utf-8")) == {"é"}


class TestNativeProvider:
    """Test the platform tool provider."""

    def make_provider(self, tool="xclip"):
        with patch.object(clipboard.sys, "platform", "linux"), \
                patch.object(clipboard.shutil, "which", side_effect=lambda name: name == tool):
            return NativeProvider()

    def test_detects_tool(self):
        provider = self.make_provider("xsel")
        assert provider.available
        assert provider.name == "Native (xsel)"

    def test_unavailable(self):
        provider = self.make_provider(tool=None)
        assert not provider.available
        assert not provider.copy("text")

    def test_copy_pipes_text(self):
        provider = self.make_provider()
        process = Mock(returncode=0)
        process.communicate.return_value = (b"", b"")
        with patch.object(clipboard.subprocess, "Popen", return_value=process) as popen:
            assert provider.copy("hello")

        assert popen.call_args[0][0] == ["xclip", "-selection", "clipboard"]
        process.communicate.assert_called_once_with(input=b"hello", timeout=5)

    def test_failure_is_recorded(self):
        provider = self.make_provider()
        process = Mock(returncode=1)
        process.communicate.return_value = (b"", b"Can't open display\n")
        with patch.object(clipboard.subprocess, "Popen", return_value=process):
            assert not provider.copy("hello")
        assert provider.last_error == "Can't open display"

    def test_timeout(self):
        provider = self.make_provider()
        process = Mock()
        process.communicate.side_effect = subprocess.TimeoutExpired("xclip", 5)
        with patch.object(clipboard.subprocess, "Popen", return_value=process):
            assert not provider.copy("hello")
        assert provider.last_error
        process.kill.assert_called_once()

    def test_missing_executable(self):
        provider = self.make_provider()
        with patch.object(clipboard.subprocess, "Popen", side_effect=FileNotFoundError("xclip")):
            assert not provider.copy("hello")
        assert "xclip" in provider.last_error


class TestCreateProvider:
    """Test picking a provider from the setting."""

    def test_default_is_osc52(self):
        assert isinstance(create_provider(), OSC52Provider)

    def test_native_falls_back_without_tool(self):
        with patch.object(clipboard.shutil, "which", return_value=None):
            assert isinstance(create_provider("native"), OSC52Provider)

    def test_native(self):
        with patch.object(clipboard.sys, "platform", "linux"), \
                patch.object(clipboard.shutil, "which", return_value="/usr/bin/xclip"):
            assert isinstance(create_provider("native"), NativeProvider)
