"""Fetching, verifying and unpacking plugin archives."""

from __future__ import annotations

import hashlib
import io
import logging
import os
import re
import shutil
import tarfile
import urllib.error
import urllib.parse
import urllib.request
import zipfile
import zlib
from collections.abc import Callable, Iterator
from contextlib import closing
from dataclasses import dataclass
from typing import BinaryIO, Protocol

log = logging.getLogger(__name__)

_O_BINARY = getattr(os, "O_BINARY", 0)
_SNIFF_LENGTH = 512


class DownloadError(Exception):
    """An archive could not be fetched, verified or unpacked."""


class Verifier(Protocol):
    """Receives the downloaded bytes and then judges them."""

    def write(self, data: bytes) -> int: ...

    def verify(self) -> None: ...


class Fetcher(Protocol):
    """Opens a readable binary stream for a URI."""

    def get(self, uri: str) -> BinaryIO: ...


class Sha256Verifier:
    """Checks written data against an expected SHA-256 digest given in hex."""

    def __init__(self, hashed: str) -> None:
        try:
            self._wanted = bytes.fromhex(hashed)
        except ValueError:
            self._wanted = b""
        self._hash = hashlib.sha256()

    def write(self, data: bytes) -> int:
        """Feed data into the digest."""
        self._hash.update(data)
        return len(data)

    def verify(self) -> None:
        """Raise DownloadError unless the digest matches."""
        log.debug("Compare sha256 (%s) signed version", self._wanted.hex())
        got = self._hash.digest()
        if got != self._wanted:
            raise DownloadError(
                f"checksum does not match, want: {self._wanted.hex()}, got {got.hex()}"
            )


class HTTPFetcher:
    """Fetches files over http:// and https://."""

    def get(self, uri: str) -> BinaryIO:
        """Open the resource; the response body is returned whatever its status."""
        log.debug("Fetching %r", uri)
        scheme = urllib.parse.urlsplit(uri).scheme
        if scheme not in ("http", "https"):
            raise DownloadError(f'failed to download "{uri}": unsupported protocol scheme "{scheme}"')
        try:
            return urllib.request.urlopen(uri)  # noqa: S310 - scheme checked above
        except urllib.error.HTTPError as exc:
            return exc
        except (OSError, ValueError) as exc:
            raise DownloadError(f'failed to download "{uri}": {exc}') from exc


@dataclass(frozen=True)
class FileFetcher:
    """Reads a local file, whatever URI is asked for."""

    path: str

    def get(self, uri: str) -> BinaryIO:
        """Open the local file for reading."""
        log.debug("Reading %r", self.path)
        try:
            return open(self.path, "rb")
        except OSError as exc:
            raise DownloadError(
                f'failed to open archive file "{self.path}" for reading: {exc}'
            ) from exc


def download(url: str, verifier: Verifier, fetcher: Fetcher) -> bytes:
    """Fetch a file into memory, pass it through the verifier and return it."""
    try:
        body = fetcher.get(url)
    except (OSError, ValueError, DownloadError) as exc:
        raise DownloadError(f"failed to obtain plugin archive: {exc}") from exc
    log.debug("Reading archive file into memory")
    with closing(body):
        try:
            data = body.read()
        except OSError as exc:
            raise DownloadError(f"could not read archive: {exc}") from exc
    log.debug("Read %d bytes from archive into memory", len(data))
    verifier.write(data)
    verifier.verify()
    return data


def suspicious_path(path: str) -> None:
    """Raise DownloadError for archive entries that could escape the target."""
    if ".." in path:
        raise DownloadError(f'refusing to unpack archive with suspicious entry "{path}"')
    if path.startswith(("/", "\\")):
        raise DownloadError(f'refusing to unpack archive with absolute entry "{path}"')


def _target_path(target_dir: str, name: str) -> str:
    return os.path.normpath(os.path.join(target_dir, name.replace("/", os.sep)))


def _zip_mode(info: zipfile.ZipInfo) -> int:
    unix_mode = (info.external_attr >> 16) & 0o777 if info.create_system == 3 else 0
    if unix_mode:
        return unix_mode
    mode = 0o777 if info.is_dir() else 0o666
    if info.external_attr & 0x01:
        mode &= ~0o222
    return mode


_ZIP_READ_ERRORS = (zipfile.BadZipFile, OSError, EOFError, zlib.error, NotImplementedError)


def extract_zip(target_dir: str, data: bytes) -> None:
    """Unpack a zip archive into a directory."""
    log.debug("Extracting zip archive to %r", target_dir)
    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as exc:
        raise DownloadError(f"not a valid zip archive: {exc}") from exc

    with archive:
        for info in archive.infolist():
            suspicious_path(info.filename)
            path = _target_path(target_dir, info.filename)
            mode = _zip_mode(info)
            if info.is_dir():
                try:
                    os.makedirs(path, mode, exist_ok=True)
                except OSError as exc:
                    raise DownloadError(f"can't create directory tree: {exc}") from exc
                continue

            try:
                source = archive.open(info)
            except _ZIP_READ_ERRORS as exc:
                raise DownloadError(f"could not open inflating zip file: {exc}") from exc
            with source:
                try:
                    fd = os.open(path, os.O_CREAT | os.O_WRONLY | os.O_TRUNC | _O_BINARY, mode)
                except OSError as exc:
                    raise DownloadError(
                        f"can't create file in zip destination dir: {exc}"
                    ) from exc
                with os.fdopen(fd, "wb") as target:
                    try:
                        shutil.copyfileobj(source, target)
                    except _ZIP_READ_ERRORS as exc:
                        raise DownloadError(
                            f"can't copy content to zip destination file: {exc}"
                        ) from exc


_TAR_READ_ERRORS = (tarfile.TarError, OSError, EOFError, zlib.error)


def _tar_members(archive: tarfile.TarFile) -> Iterator[tarfile.TarInfo]:
    members = iter(archive)
    while True:
        try:
            member = next(members)
        except StopIteration:
            return
        except _TAR_READ_ERRORS as exc:
            raise DownloadError(f"tar extraction error: {exc}") from exc
        yield member


def extract_targz(target_dir: str, data: bytes) -> None:
    """Unpack a gzipped tar archive into a directory."""
    log.debug("tar: extracting to %r", target_dir)
    try:
        archive = tarfile.open(fileobj=io.BytesIO(data), mode="r:gz")
    except _TAR_READ_ERRORS as exc:
        raise DownloadError(f"failed to create gzip reader: {exc}") from exc

    with archive:
        for member in _tar_members(archive):
            log.debug("tar: processing %r (type=%r, mode=%o)", member.name, member.type, member.mode)
            if member.name == "pax_global_header":
                log.debug("tar: skipping pax_global_header file")
                continue

            suspicious_path(member.name)
            path = _target_path(target_dir, member.name)
            mode = member.mode & 0o777
            if member.isdir():
                try:
                    os.makedirs(path, mode, exist_ok=True)
                except OSError as exc:
                    raise DownloadError(f"failed to create directory from tar: {exc}") from exc
            elif member.isreg():
                parent = os.path.dirname(path)
                log.debug("tar: ensuring parent dirs exist for regular file, dir=%s", parent)
                try:
                    os.makedirs(parent, 0o755, exist_ok=True)
                except OSError as exc:
                    raise DownloadError(f"failed to create directory for tar: {exc}") from exc
                try:
                    fd = os.open(path, os.O_CREAT | os.O_WRONLY | _O_BINARY, mode)
                except OSError as exc:
                    raise DownloadError(f'failed to create file "{path}": {exc}') from exc
                with os.fdopen(fd, "wb") as target:
                    try:
                        source = archive.extractfile(member)
                        if source is not None:
                            with source:
                                shutil.copyfileobj(source, target)
                    except _TAR_READ_ERRORS as exc:
                        raise DownloadError(
                            f'failed to copy "{member.name}" from tar into file: {exc}'
                        ) from exc
            else:
                raise DownloadError(
                    f'unable to handle file type {ord(member.type)} for "{member.name}" in tar'
                )
            log.debug("tar: processed %r", member.name)
    log.debug("tar extraction to %s complete", target_dir)


_WHITESPACE = b"\t\n\x0c\r "

_HTML_TAGS = (
    b"<!DOCTYPE HTML", b"<HTML", b"<HEAD", b"<SCRIPT", b"<IFRAME", b"<H1", b"<DIV",
    b"<FONT", b"<TABLE", b"<A", b"<STYLE", b"<TITLE", b"<B", b"<BODY", b"<BR", b"<P",
    b"<!--",
)

_SIGNATURES = tuple(
    (re.compile(pattern, re.DOTALL), content_type)
    for pattern, content_type in (
        (rb"%PDF-", "application/pdf"),
        (rb"%!PS-Adobe-", "application/postscript"),
        (rb"\xFE\xFF.{2}", "text/plain; charset=utf-16be"),
        (rb"\xFF\xFE.{2}", "text/plain; charset=utf-16le"),
        (rb"\xEF\xBB\xBF.", "text/plain; charset=utf-8"),
        (rb"\x00\x00\x01\x00", "image/x-icon"),
        (rb"\x00\x00\x02\x00", "image/x-icon"),
        (rb"BM", "image/bmp"),
        (rb"GIF87a", "image/gif"),
        (rb"GIF89a", "image/gif"),
        (rb"RIFF.{4}WEBPVP", "image/webp"),
        (rb"\x89PNG\r\n\x1A\n", "image/png"),
        (rb"\xFF\xD8\xFF", "image/jpeg"),
        (rb"FORM.{4}AIFF", "audio/aiff"),
        (rb"ID3", "audio/mpeg"),
        (rb"OggS\x00", "application/ogg"),
        (rb"MThd\x00\x00\x00\x06", "audio/midi"),
        (rb"RIFF.{4}AVI ", "video/avi"),
        (rb"RIFF.{4}WAVE", "audio/wave"),
        (rb"\x1A\x45\xDF\xA3", "video/webm"),
        (rb"wOFF", "font/woff"),
        (rb"wOF2", "font/woff2"),
        (rb"\x1F\x8B\x08", "application/x-gzip"),
        (rb"PK\x03\x04", "application/zip"),
        (rb"Rar!\x1A\x07\x00", "application/x-rar-compressed"),
        (rb"Rar!\x1A\x07\x01\x00", "application/x-rar-compressed"),
        (rb"\x00asm", "application/wasm"),
    )
)

_BINARY_BYTES = frozenset([*range(0x00, 0x09), 0x0B, *range(0x0E, 0x1B), *range(0x1C, 0x20)])


def _is_html(data: bytes) -> bool:
    for tag in _HTML_TAGS:
        if len(data) < len(tag) + 1:
            continue
        if data[: len(tag)].upper() == tag and data[len(tag)] in b" >":
            return True
    return False


def _sniff(data: bytes) -> str:
    stripped = data.lstrip(_WHITESPACE)
    if _is_html(stripped):
        return "text/html; charset=utf-8"
    if stripped.startswith(b"<?xml"):
        return "text/xml; charset=utf-8"
    for pattern, content_type in _SIGNATURES:
        if pattern.match(data):
            return content_type
    if not any(byte in _BINARY_BYTES for byte in stripped):
        return "text/plain; charset=utf-8"
    return "application/octet-stream"


def detect_mime_type(data: bytes) -> str:
    """Guess the media type from the first 512 bytes, without parameters."""
    head = data[:_SNIFF_LENGTH]
    if len(head) < _SNIFF_LENGTH:
        log.debug("Did only read %d of 512 bytes to determine the file type", len(head))
    return _sniff(head).split(";")[0]


DEFAULT_EXTRACTORS: dict[str, Callable[[str, bytes], None]] = {
    "application/zip": extract_zip,
    "application/x-gzip": extract_targz,
}


def extract_archive(dst: str, data: bytes) -> None:
    """Unpack an archive whose format is recognised from its content."""
    mime_type = detect_mime_type(data)
    log.debug("detected %r file type", mime_type)
    extractor = DEFAULT_EXTRACTORS.get(mime_type)
    if extractor is None:
        raise DownloadError(
            f'mime type "{mime_type}" for archive file is not a supported archive format'
        )
    try:
        extractor(dst, data)
    except DownloadError as exc:
        raise DownloadError(f"failed to extract file: {exc}") from exc


@dataclass
class Downloader:
    """Fetches, verifies and unpacks a plugin archive."""

    verifier: Verifier
    fetcher: Fetcher

    def get(self, uri: str, dst: str) -> None:
        """Fetch and verify the URI, then unpack it into dst."""
        data = download(uri, self.verifier, self.fetcher)
        extract_archive(dst, data)