"""Shared fixtures: a clean environment, fake model clients, scratch projects."""

import os
import shutil
import subprocess

import pytest

from mavens.llm import ModelConfig, ServiceUnavailableError
from mavens.memory import ContextManager, LearningSystem
from mavens.utils.config import ContextConfig, LearningConfig, reset_config


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Every test starts from default configuration."""
    for name in list(os.environ):
        if name.startswith("MAVENS_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("LEARNING_STORE_PATH", raising=False)
    monkeypatch.setenv("LOG_LEVEL", "error")
    reset_config()
    yield
    reset_config()


class FakeLLM:
    """Stands in for LLMClient; returns a canned reply or raises the given error."""

    def __init__(self, reply: str = "Looks good to me.", error: Exception | None = None):
        self.reply = reply
        self.error = error
        self.prompts: list[str] = []

    async def complete(self, prompt: str, model_config: ModelConfig | None = None) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def offline_llm():
    """A model server that is down."""
    return FakeLLM(error=ServiceUnavailableError("lmstudio", "http://localhost:1234"))


@pytest.fixture
def workspace(tmp_path):
    """An empty project directory."""
    project = tmp_path / "project"
    project.mkdir()
    return project


@pytest.fixture
def python_project(workspace):
    (workspace / "pyproject.toml").write_text("[project]\nname = 'demo'\n")
    (workspace / "app.py").write_text('"""Demo app."""\n\n\ndef main():\n    return 1\n')
    return workspace


@pytest.fixture
def git_repo(workspace):
    """A fresh git repository with a committer identity configured."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    subprocess.run(["git", "init", "-q"], cwd=workspace, check=True)
    subprocess.run(["git", "config", "user.email", "dev@example.com"], cwd=workspace, check=True)
    subprocess.run(["git", "config", "user.name", "Dev"], cwd=workspace, check=True)
    subprocess.run(["git", "config", "commit.gpgsign", "false"], cwd=workspace, check=True)
    return workspace


@pytest.fixture
def context():
    return ContextManager(ContextConfig(window_size=20, topic_window=3))


@pytest.fixture
def learning():
    return LearningSystem(LearningConfig())
