from __future__ import annotations

import asyncio
import base64
from io import BytesIO
import json
import tarfile

from app.domain.errors import DomainValidationError
from app.domain.models import NormalizedFileSet, SandboxFileContent, SandboxFiles
from app.domain.pipeline_spec import PipelineSpec

ARCHIVE_FILE_MODE = 0o644


def normalize_sandbox_files(files: SandboxFiles, *, spec: PipelineSpec) -> NormalizedFileSet:
    """Map editor virtual paths onto the project layout the build image expects."""
    normalized: NormalizedFileSet = {}
    for virtual_path, value in files.items():
        normalized[normalize_path(virtual_path, spec=spec)] = resolve_content(value)
    return rewrite_manifest(normalized, spec=spec)


def normalize_path(virtual_path: str, *, spec: PipelineSpec) -> str:
    if not virtual_path.startswith("/"):
        raise DomainValidationError(f"virtual path must start with '/': {virtual_path!r}")
    layout = spec.layout
    if virtual_path == layout.manifest_path or virtual_path.startswith(layout.public_prefix):
        return virtual_path[1:]
    return f"{layout.source_dir}{virtual_path}"


def resolve_content(value: SandboxFileContent) -> str:
    if isinstance(value, str):
        return value
    code = value.get("code")
    if not isinstance(code, str):
        raise DomainValidationError("sandbox file object must carry a string 'code' field")
    return code


def rewrite_manifest(files: NormalizedFileSet, *, spec: PipelineSpec) -> NormalizedFileSet:
    """Pin sandbox metadata and build scripts in package.json.

    Best effort: a manifest that is not a JSON object is returned untouched.
    """
    manifest_key = spec.manifest_file
    raw = files.get(manifest_key)
    if raw is None:
        return files

    try:
        manifest = json.loads(raw)
    except json.JSONDecodeError:
        return files
    if not isinstance(manifest, dict):
        return files

    defaults = spec.manifest_defaults
    manifest["name"] = defaults.name
    manifest["version"] = defaults.version
    manifest["private"] = defaults.private
    manifest["scripts"] = dict(defaults.scripts)

    rewritten = dict(files)
    rewritten[manifest_key] = json.dumps(manifest, indent=2)
    return rewritten


async def build_tar_archive(files: NormalizedFileSet) -> bytes:
    # tarfile is blocking; the coroutine resolves only once the archive is closed.
    return await asyncio.to_thread(_write_tar, dict(files))


def encode_build_context(archive: bytes) -> str:
    # The deploy service decodes with the unpadded URL-safe alphabet.
    return base64.urlsafe_b64encode(archive).decode("ascii").rstrip("=")


def decode_build_context(payload: str) -> bytes:
    padding = "=" * (-len(payload) % 4)
    return base64.urlsafe_b64decode(payload + padding)


async def package_build_context(files: NormalizedFileSet) -> str:
    archive = await build_tar_archive(files)
    return encode_build_context(archive)


def read_tar_archive(archive: bytes) -> NormalizedFileSet:
    files: NormalizedFileSet = {}
    with tarfile.open(fileobj=BytesIO(archive), mode="r:") as tar:
        for member in tar.getmembers():
            if not member.isfile():
                continue
            extracted = tar.extractfile(member)
            if extracted is None:
                continue
            files[member.name] = extracted.read().decode("utf-8")
    return files


def _write_tar(files: NormalizedFileSet) -> bytes:
    buffer = BytesIO()
    with tarfile.open(fileobj=buffer, mode="w", format=tarfile.PAX_FORMAT) as tar:
        for path, content in files.items():
            payload = content.encode("utf-8")
            info = tarfile.TarInfo(name=path)
            info.type = tarfile.REGTYPE
            info.mode = ARCHIVE_FILE_MODE
            info.size = len(payload)
            tar.addfile(info, BytesIO(payload))
    return buffer.getvalue()
