"""
ola.core.projects — On-disk project store.

A project groups goals, contexts and uploaded files that are folded into
every prompt run against it.  Layout under the ola home directory::

    data/projects/<id>/project.json
    data/projects/<id>/files/<file-id>
    data/active_project
"""

from __future__ import annotations

import base64
import json
import logging
import shutil
import uuid
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from ola.core.config import get_ola_home
from ola.core.errors import ProjectError
from ola.core.models import ProjectContent, ProjectFileContent

logger = logging.getLogger("ola.projects")

_MIME_TYPES = {
    "rs": "text/rust",
    "py": "text/python",
    "js": "text/javascript",
    "ts": "text/typescript",
    "json": "application/json",
    "yaml": "text/yaml",
    "yml": "text/yaml",
    "toml": "text/toml",
    "md": "text/markdown",
    "txt": "text/plain",
    "html": "text/html",
    "css": "text/css",
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def guess_mime_type(filename: str) -> str:
    ext = Path(filename).suffix.lstrip(".").lower()
    return _MIME_TYPES.get(ext, "application/octet-stream")


class ProjectFile(BaseModel):
    id: str = Field(default_factory=_new_id)
    filename: str
    size: int = 0
    mime_type: str | None = None
    uploaded_at: datetime = Field(default_factory=_now)


class Goal(BaseModel):
    id: str = Field(default_factory=_new_id)
    text: str
    order: int = 0


class Context(BaseModel):
    id: str = Field(default_factory=_new_id)
    text: str
    order: int = 0


class Project(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
    files: list[ProjectFile] = Field(default_factory=list)
    goals: list[Goal] = Field(default_factory=list)
    contexts: list[Context] = Field(default_factory=list)

    def touch(self) -> None:
        self.updated_at = _now()

    def add_goal(self, text: str) -> Goal:
        goal = Goal(text=text, order=len(self.goals))
        self.goals.append(goal)
        self.touch()
        return goal

    def add_context(self, text: str) -> Context:
        context = Context(text=text, order=len(self.contexts))
        self.contexts.append(context)
        self.touch()
        return context

    def remove_goal(self, goal_id: str) -> bool:
        before = len(self.goals)
        self.goals = [g for g in self.goals if g.id != goal_id]
        return self._changed(before, len(self.goals))

    def remove_context(self, context_id: str) -> bool:
        before = len(self.contexts)
        self.contexts = [c for c in self.contexts if c.id != context_id]
        return self._changed(before, len(self.contexts))

    def remove_file(self, file_id: str) -> bool:
        before = len(self.files)
        self.files = [f for f in self.files if f.id != file_id]
        return self._changed(before, len(self.files))

    def _changed(self, before: int, after: int) -> bool:
        if before != after:
            self.touch()
            return True
        return False


class ProjectStore:
    """Reads and writes projects under ``<ola home>/data/projects``."""

    def __init__(self, root: Path | None = None) -> None:
        self.root = root or get_ola_home() / "data" / "projects"
        self.root.mkdir(parents=True, exist_ok=True)

    @property
    def _active_file(self) -> Path:
        return self.root.parent / "active_project"

    def _project_dir(self, project_id: str) -> Path:
        return self.root / project_id

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def create_project(self, name: str) -> Project:
        project = Project(name=name)
        (self._project_dir(project.id) / "files").mkdir(parents=True, exist_ok=True)
        self.save_project(project)
        logger.debug("Created project %s (%s)", project.name, project.id)
        return project

    def load_project(self, project_id: str) -> Project | None:
        path = self._project_dir(project_id) / "project.json"
        if not path.exists():
            return None
        try:
            return Project.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as exc:
            raise ProjectError(f"Failed to read project file {path}: {exc}") from exc

    def require_project(self, project_id: str) -> Project:
        project = self.load_project(project_id)
        if project is None:
            raise ProjectError(f"Project '{project_id}' not found")
        return project

    def save_project(self, project: Project) -> None:
        project_dir = self._project_dir(project.id)
        project_dir.mkdir(parents=True, exist_ok=True)
        (project_dir / "project.json").write_text(
            project.model_dump_json(indent=2), encoding="utf-8"
        )

    def list_projects(self) -> list[Project]:
        """All readable projects, most recently updated first."""
        projects: list[Project] = []
        for entry in self.root.iterdir():
            if not entry.is_dir():
                continue
            try:
                project = self.load_project(entry.name)
            except ProjectError as exc:
                logger.warning("Skipping unreadable project %s: %s", entry.name, exc)
                continue
            if project is not None:
                projects.append(project)
        projects.sort(key=lambda p: p.updated_at, reverse=True)
        return projects

    def find_project(self, name_or_id: str) -> Project:
        """Look a project up by id, then by case-insensitive name."""
        by_id = self.load_project(name_or_id)
        if by_id is not None:
            return by_id
        for project in self.list_projects():
            if project.name.lower() == name_or_id.lower():
                return project
        raise ProjectError(f"Project '{name_or_id}' not found")

    def edit_project(self, project_id: str, new_name: str | None = None) -> Project:
        project = self.require_project(project_id)
        if new_name:
            project.name = new_name
            project.touch()
        self.save_project(project)
        return project

    def delete_project(self, project_id: str) -> None:
        project_dir = self._project_dir(project_id)
        if not project_dir.exists():
            raise ProjectError(f"Project '{project_id}' not found")
        shutil.rmtree(project_dir)
        # Drops the active reference if it pointed at this project
        self.get_active_project()

    def set_active_project(self, project_id: str) -> None:
        self.require_project(project_id)
        self._active_file.write_text(project_id, encoding="utf-8")

    def get_active_project(self) -> str | None:
        """The active project id; a stale reference is removed."""
        if not self._active_file.exists():
            return None
        project_id = self._active_file.read_text(encoding="utf-8").strip()
        if project_id and self.load_project(project_id) is not None:
            return project_id
        self._active_file.unlink()
        return None

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def upload_file(self, project_id: str, filename: str, content: bytes) -> ProjectFile:
        """Store ``content`` and register it on the project."""
        project = self.require_project(project_id)
        files_dir = self._project_dir(project_id) / "files"
        files_dir.mkdir(parents=True, exist_ok=True)

        record = ProjectFile(
            filename=filename, size=len(content), mime_type=guess_mime_type(filename)
        )
        (files_dir / record.id).write_bytes(content)
        project.files.append(record)
        project.touch()
        self.save_project(project)
        return record

    def download_file(self, project_id: str, file_id: str) -> bytes | None:
        path = self._project_dir(project_id) / "files" / file_id
        if not path.exists():
            return None
        return path.read_bytes()

    def read_file_as_text(self, project_id: str, file_id: str) -> str | None:
        """File content as text; binary content is returned base64-encoded."""
        content = self.download_file(project_id, file_id)
        if content is None:
            return None
        try:
            return content.decode("utf-8")
        except UnicodeDecodeError:
            encoded = base64.b64encode(content).decode("ascii")
            return f"[Binary file - base64 encoded: {encoded}]"

    def delete_file(self, project_id: str, file_id: str) -> bool:
        """Remove a file from disk and from the project record."""
        project = self.require_project(project_id)
        path = self._project_dir(project_id) / "files" / file_id
        existed = path.exists()
        if existed:
            path.unlink()
        if project.remove_file(file_id):
            self.save_project(project)
            return True
        return existed

    # ------------------------------------------------------------------
    # Goals / contexts
    # ------------------------------------------------------------------

    def add_goal(self, project_id: str, text: str) -> Goal:
        project = self.require_project(project_id)
        goal = project.add_goal(text)
        self.save_project(project)
        return goal

    def remove_goal(self, project_id: str, goal_id: str) -> bool:
        project = self.require_project(project_id)
        removed = project.remove_goal(goal_id)
        if removed:
            self.save_project(project)
        return removed

    def add_context(self, project_id: str, text: str) -> Context:
        project = self.require_project(project_id)
        context = project.add_context(text)
        self.save_project(project)
        return context

    def remove_context(self, project_id: str, context_id: str) -> bool:
        project = self.require_project(project_id)
        removed = project.remove_context(context_id)
        if removed:
            self.save_project(project)
        return removed

    # ------------------------------------------------------------------
    # Prompt assembly
    # ------------------------------------------------------------------

    def project_content(self, project_id: str) -> ProjectContent:
        """Snapshot of a project with every file decoded to text."""
        project = self.require_project(project_id)
        files: list[ProjectFileContent] = []
        for record in project.files:
            text = self.read_file_as_text(project_id, record.id)
            if text is None:
                logger.warning("File %s of project %s is missing on disk", record.filename, project.name)
                continue
            files.append(ProjectFileContent(filename=record.filename, text=text))
        return ProjectContent(
            name=project.name,
            goals=[g.text for g in sorted(project.goals, key=lambda g: g.order)],
            contexts=[c.text for c in sorted(project.contexts, key=lambda c: c.order)],
            files=files,
        )


def export_project(project: Project) -> str:
    """Pretty JSON for ``project show --json``."""
    return json.dumps(project.model_dump(mode="json"), indent=2)
