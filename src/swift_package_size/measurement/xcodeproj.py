"""Dependency injector that adds a Swift Package to an Xcode project.

Edits ``<project>.xcodeproj/project.pbxproj`` in place. The file is an
OpenStep-style property list; the editor below only understands enough of it
to find objects by id, read their ``isa`` and append to their lists, which is
all that declaring a remote package product needs.
"""

import hashlib
import logging
import os
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path

from ..exceptions import InjectionError
from .models import DependencySpec

logger = logging.getLogger(__name__)

PBXPROJ_NAME = "project.pbxproj"

_OBJECT_HEADER = re.compile(r"^[ \t]*([0-9A-Za-z]{24})(?: /\*.*?\*/)? = \{", re.M)
_ISA = re.compile(r"\s*isa = (\w+);")
_ROOT_OBJECT = re.compile(r"^\s*rootObject = ([0-9A-Za-z]{24})", re.M)
_COMMENT = re.compile(r"/\*.*?\*/", re.S)
_UNQUOTED = re.compile(r"^[A-Za-z0-9_$./]+$")

# dstSubfolderSpec of a copy phase that embeds into the app's Frameworks folder
_FRAMEWORKS_FOLDER_SPEC = "10"


def _quote(value: str) -> str:
    if _UNQUOTED.match(value):
        return value
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _object_id(*parts: str) -> str:
    """Deterministic 24 hex digit object id."""
    return hashlib.sha1(":".join(parts).encode("utf-8")).hexdigest()[:24].upper()


def _atomic_write_text(path: Path, content: str) -> None:
    """Atomically write text to `path` using temp + fsync + os.replace."""
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.tmp.", dir=path.parent)
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        try:
            tmp_path.unlink(missing_ok=True)
        except OSError:
            pass
        raise


@dataclass(frozen=True)
class _Span:
    """Location of an object (or list) in the document text."""

    id: str
    start: int  # first character of the header line
    open: int  # index of the opening brace
    end: int  # index just past the closing brace
    isa: str | None


class PbxprojDocument:
    """Minimal, text-preserving editor for project.pbxproj contents."""

    def __init__(self, text: str):
        self.text = text

    # --- scanning ---

    def _match_close(self, open_index: int) -> int:
        """Index just past the bracket matching the one at ``open_index``."""
        text = self.text
        depth = 0
        i = open_index
        while i < len(text):
            char = text[i]
            if char == '"':
                i += 1
                while i < len(text) and text[i] != '"':
                    i += 2 if text[i] == "\\" else 1
            elif text.startswith("/*", i):
                close = text.find("*/", i + 2)
                if close == -1:
                    break
                i = close + 1
            elif char in "{(":
                depth += 1
            elif char in "})":
                depth -= 1
                if depth == 0:
                    return i + 1
            i += 1
        raise InjectionError("Malformed project file: unbalanced brackets")

    def objects(self) -> list[_Span]:
        spans = []
        for match in _OBJECT_HEADER.finditer(self.text):
            open_index = match.end() - 1
            end = self._match_close(open_index)
            isa = _ISA.match(self.text, open_index + 1)
            spans.append(_Span(match.group(1), match.start(), open_index, end, isa.group(1) if isa else None))
        return spans

    def find(self, object_id: str) -> _Span | None:
        # Ids also appear as keys of nested dictionaries (TargetAttributes); only real objects have an isa.
        for span in self.objects():
            if span.id == object_id and span.isa:
                return span
        return None

    def find_all(self, isa: str) -> list[_Span]:
        return [span for span in self.objects() if span.isa == isa]

    def body(self, span: _Span) -> str:
        return self.text[span.open + 1 : span.end - 1]

    def root_object_id(self) -> str | None:
        match = _ROOT_OBJECT.search(self.text)
        return match.group(1) if match else None

    def _find_list(self, span: _Span, key: str) -> tuple[int, int] | None:
        """(open paren index, index past close paren) of ``key = (...)`` directly in ``span``."""
        pattern = re.compile(rf"^[ \t]*{re.escape(key)} = \(", re.M)
        match = pattern.search(self.text, span.open + 1, span.end - 1)
        if not match:
            return None
        open_index = match.end() - 1
        return open_index, self._match_close(open_index)

    def list_ids(self, span: _Span, key: str) -> list[str]:
        bounds = self._find_list(span, key)
        if bounds is None:
            return []
        content = _COMMENT.sub("", self.text[bounds[0] + 1 : bounds[1] - 1])
        return [item.strip() for item in content.split(",") if item.strip()]

    def value(self, span: _Span, key: str) -> str | None:
        match = re.compile(rf"^[ \t]*{re.escape(key)} = ([^;]*);", re.M).search(self.text, span.open + 1, span.end - 1)
        return match.group(1).strip().strip('"') if match else None

    # --- editing ---

    def append_to_list(self, object_id: str, key: str, entry: str) -> None:
        """Append ``entry`` to the list ``key`` of an object, creating the list if needed."""
        span = self.find(object_id)
        if span is None:
            raise InjectionError(f"Object {object_id} not found in project file")

        bounds = self._find_list(span, key)
        if bounds is not None:
            open_index, end = bounds
            content = self.text[open_index + 1 : end - 1].rstrip()
            replacement = f"{content}\n\t\t\t\t{entry},\n\t\t\t"
            self.text = self.text[: open_index + 1] + replacement + self.text[end - 1 :]
            return

        content = self.body(span).rstrip()
        replacement = f"{content}\n\t\t\t{key} = (\n\t\t\t\t{entry},\n\t\t\t);\n\t\t"
        self.text = self.text[: span.open + 1] + replacement + self.text[span.end - 1 :]

    def add_object(self, isa: str, block: str) -> None:
        """Insert an object block into its ``/* Begin <isa> section */``, creating the section if needed."""
        end_marker = f"/* End {isa} section */"
        index = self.text.find(end_marker)
        if index != -1:
            line_start = self.text.rfind("\n", 0, index) + 1
            self.text = self.text[:line_start] + block + "\n" + self.text[line_start:]
            return

        match = re.compile(r"^[ \t]*objects = \{", re.M).search(self.text)
        if not match:
            raise InjectionError("Malformed project file: no objects dictionary")
        close = self._match_close(match.end() - 1) - 1
        line_start = self.text.rfind("\n", 0, close) + 1
        section = f"\n/* Begin {isa} section */\n{block}\n{end_marker}\n"
        self.text = self.text[:line_start] + section + self.text[line_start:]


class XcodeProjInjector:
    """Declares a remote Swift Package product on the app target."""

    def inject(self, project_path: Path, spec: DependencySpec) -> None:
        pbxproj = Path(project_path) / PBXPROJ_NAME
        try:
            text = pbxproj.read_text(encoding="utf-8")
        except OSError as e:
            raise InjectionError(f"Unable to read project at {project_path}: {e}") from e

        document = PbxprojDocument(text)
        self.add_package(document, spec)

        try:
            _atomic_write_text(pbxproj, document.text)
        except OSError as e:
            raise InjectionError(f"Unable to write project at {project_path}: {e}") from e

        logger.info(f"Added {spec.product} {spec.version} ({spec.linking.value}) to {project_path}")

    def add_package(self, document: PbxprojDocument, spec: DependencySpec) -> None:
        """Apply the package declaration to ``document``."""
        project_id = document.root_object_id()
        project = document.find(project_id) if project_id else None
        if project is None or project.isa != "PBXProject":
            raise InjectionError("Unable to retrieve app project: no PBXProject root object")

        target = self._app_target(document, project)
        for existing in document.find_all("XCRemoteSwiftPackageReference"):
            if document.value(existing, "repositoryURL") == spec.repository_url:
                raise InjectionError(f"{spec.repository_url} is already a dependency of the project")

        frameworks_phase = self._phase(document, target, "PBXFrameworksBuildPhase")
        if frameworks_phase is None:
            raise InjectionError("App target has no Frameworks build phase")

        package_id = _object_id("package", spec.repository_url)
        product_id = _object_id("product", spec.repository_url, spec.product)
        build_file_id = _object_id("build-file", spec.repository_url, spec.product)
        package_comment = f'XCRemoteSwiftPackageReference "{spec.product}"'

        document.add_object(
            "XCRemoteSwiftPackageReference",
            f"\t\t{package_id} /* {package_comment} */ = {{\n"
            "\t\t\tisa = XCRemoteSwiftPackageReference;\n"
            f"\t\t\trepositoryURL = {_quote(spec.repository_url)};\n"
            "\t\t\trequirement = {\n"
            "\t\t\t\tkind = upToNextMinorVersion;\n"
            f"\t\t\t\tminimumVersion = {_quote(spec.version)};\n"
            "\t\t\t};\n"
            "\t\t};",
        )
        document.add_object(
            "XCSwiftPackageProductDependency",
            f"\t\t{product_id} /* {spec.product} */ = {{\n"
            "\t\t\tisa = XCSwiftPackageProductDependency;\n"
            f"\t\t\tpackage = {package_id} /* {package_comment} */;\n"
            f"\t\t\tproductName = {_quote(spec.product)};\n"
            "\t\t};",
        )
        document.add_object(
            "PBXBuildFile",
            f"\t\t{build_file_id} /* {spec.product} in Frameworks */ = "
            f"{{isa = PBXBuildFile; productRef = {product_id} /* {spec.product} */; }};",
        )

        document.append_to_list(project.id, "packageReferences", f"{package_id} /* {package_comment} */")
        document.append_to_list(target.id, "packageProductDependencies", f"{product_id} /* {spec.product} */")
        document.append_to_list(frameworks_phase.id, "files", f"{build_file_id} /* {spec.product} in Frameworks */")

        if spec.is_dynamic:
            self._embed(document, target, spec, product_id)

    def _app_target(self, document: PbxprojDocument, project: _Span) -> _Span:
        for target_id in document.list_ids(project, "targets"):
            target = document.find(target_id)
            if target is not None and target.isa == "PBXNativeTarget":
                return target
        raise InjectionError("Unable to retrieve app target from project")

    def _phase(self, document: PbxprojDocument, target: _Span, isa: str, folder_spec: str | None = None) -> _Span | None:
        for phase_id in document.list_ids(target, "buildPhases"):
            phase = document.find(phase_id)
            if phase is None or phase.isa != isa:
                continue
            if folder_spec is None or document.value(phase, "dstSubfolderSpec") == folder_spec:
                return phase
        return None

    def _embed(self, document: PbxprojDocument, target: _Span, spec: DependencySpec, product_id: str) -> None:
        """Copy the dynamic framework into the app bundle."""
        # Earlier edits moved the target; look it up again
        target = document.find(target.id) or target
        phase = self._phase(document, target, "PBXCopyFilesBuildPhase", _FRAMEWORKS_FOLDER_SPEC)
        if phase is None:
            phase_id = _object_id("embed-frameworks", target.id)
            document.add_object(
                "PBXCopyFilesBuildPhase",
                f"\t\t{phase_id} /* Embed Frameworks */ = {{\n"
                "\t\t\tisa = PBXCopyFilesBuildPhase;\n"
                "\t\t\tbuildActionMask = 2147483647;\n"
                '\t\t\tdstPath = "";\n'
                f"\t\t\tdstSubfolderSpec = {_FRAMEWORKS_FOLDER_SPEC};\n"
                "\t\t\tfiles = (\n"
                "\t\t\t);\n"
                '\t\t\tname = "Embed Frameworks";\n'
                "\t\t\trunOnlyForDeploymentPostprocessing = 0;\n"
                "\t\t};",
            )
            document.append_to_list(target.id, "buildPhases", f"{phase_id} /* Embed Frameworks */")
        else:
            phase_id = phase.id

        embed_file_id = _object_id("embed-file", spec.repository_url, spec.product)
        document.add_object(
            "PBXBuildFile",
            f"\t\t{embed_file_id} /* {spec.product} in Embed Frameworks */ = "
            f"{{isa = PBXBuildFile; productRef = {product_id} /* {spec.product} */; "
            "settings = {ATTRIBUTES = (CodeSignOnCopy, ); }; };",
        )
        document.append_to_list(phase_id, "files", f"{embed_file_id} /* {spec.product} in Embed Frameworks */")
