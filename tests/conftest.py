"""Shared test fixtures for ContextOS."""

from __future__ import annotations

from pathlib import Path

import pytest

from contextos.config import (
    Constraint,
    EmbeddingConfig,
    ProjectConfig,
    ProjectInfo,
    Severity,
)
from contextos.embedding.chunker import chunk_hash
from contextos.embedding.models import CodeChunk


@pytest.fixture
def tmp_project(tmp_path: Path) -> Path:
    """Create a temporary project directory with sample source files."""
    # Main module
    (tmp_path / "main.py").write_text('''"""Main application entry point."""

from utils import helper_function, calculate_total
from models import User, Order


def main():
    """Run the main application."""
    user = User("Alice", "alice@example.com")
    order = Order(user, items=["widget", "gadget"])
    total = calculate_total(order.items)
    result = helper_function(total)
    print(f"Order total: {result}")
    return result


def parse_arguments():
    """Parse command line arguments."""
    import argparse
    parser = argparse.ArgumentParser()
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args()


if __name__ == "__main__":
    args = parse_arguments()
    main()
''')

    # Utils module
    (tmp_path / "utils.py").write_text('''"""Utility functions."""

TAX_RATE = 0.08


def helper_function(value):
    """Apply formatting to a value."""
    return f"${value:.2f}"


def calculate_total(items):
    """Calculate total price for a list of items."""
    prices = {"widget": 9.99, "gadget": 24.99, "doohickey": 4.99}
    subtotal = sum(prices.get(item, 0) for item in items)
    tax = subtotal * TAX_RATE
    return subtotal + tax


def validate_email(email):
    """Validate an email address."""
    import re
    pattern = r"^[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\\.[a-zA-Z0-9-.]+$"
    return bool(re.match(pattern, email))
''')

    # Models module
    (tmp_path / "models.py").write_text('''"""Data models."""


class User:
    """Represents a user in the system."""

    def __init__(self, name: str, email: str):
        self.name = name
        self.email = email

    def display_name(self):
        """Get the display name."""
        return self.name.title()

    def is_valid(self):
        """Check if user data is valid."""
        from utils import validate_email
        return bool(self.name) and validate_email(self.email)


class Order:
    """Represents an order."""

    def __init__(self, user: User, items: list):
        self.user = user
        self.items = items

    def get_total(self):
        """Get the order total."""
        from utils import calculate_total
        return calculate_total(self.items)

    def summary(self):
        """Get order summary string."""
        total = self.get_total()
        return f"Order for {self.user.display_name()}: {len(self.items)} items, ${total:.2f}"
''')

    # A subdirectory with more files
    api_dir = tmp_path / "api"
    api_dir.mkdir()

    (api_dir / "__init__.py").write_text('"""API package."""\n')

    (api_dir / "routes.py").write_text('''"""API routes."""

from models import User, Order


def get_user(user_id):
    """Get a user by ID."""
    # Simulated database lookup
    return User("Test User", "test@example.com")


def create_order(user_id, items):
    """Create a new order."""
    user = get_user(user_id)
    order = Order(user, items)
    return {"total": order.get_total(), "summary": order.summary()}


def health_check():
    """Health check endpoint."""
    return {"status": "ok"}
''')

    # A small TypeScript frontend
    web_dir = tmp_path / "web"
    web_dir.mkdir()

    (web_dir / "client.ts").write_text('''export function fetchUser(id: string) {
    return fetch(`/api/users/${id}`).then((response) => response.json());
}
''')

    (web_dir / "app.ts").write_text('''import { fetchUser } from "./client";

export async function renderProfile(id: string) {
    const user = await fetchUser(id);
    return `<h1>${user.name}</h1>`;
}
''')

    return tmp_path


@pytest.fixture
def email_rule() -> Constraint:
    return Constraint(
        rule="Validate emails before saving users",
        severity=Severity.ERROR,
        suggestion="Call utils.validate_email first",
        related=["email", "user"],
    )


@pytest.fixture
def project_config(tmp_project: Path, email_rule: Constraint) -> ProjectConfig:
    """Configuration for tmp_project using the deterministic hash embedder."""
    return ProjectConfig(
        project=ProjectInfo(name="sample", description="Order service", language="python"),
        root_path=str(tmp_project),
        embedding=EmbeddingConfig(provider="hash"),
        constraints=[email_rule],
    )


@pytest.fixture
def make_chunk():
    """Factory for CodeChunks with a correct content hash."""

    def _make(content: str, file_path: str = "src/app.py", index: int = 0, start_line: int = 1):
        end_line = start_line + content.count("\n")
        return CodeChunk(
            id=f"{file_path}#{index}",
            file_path=file_path,
            content=content,
            start_line=start_line,
            end_line=end_line,
            content_hash=chunk_hash(content),
        )

    return _make


@pytest.fixture
def sample_python_source() -> str:
    """Sample Python source code for parser testing."""
    return '''"""Sample module."""

import os
from typing import List, Optional
from pathlib import Path


CONSTANT_VALUE = 42


class BaseProcessor:
    """Base class for processors."""

    def __init__(self, name: str):
        self.name = name

    def process(self, data: List[str]) -> List[str]:
        """Process the data."""
        return [self._transform(item) for item in data]

    def _transform(self, item: str) -> str:
        """Transform a single item."""
        return item.strip()


class AdvancedProcessor(BaseProcessor):
    """Advanced processor with extra features."""

    def __init__(self, name: str, verbose: bool = False):
        super().__init__(name)
        self.verbose = verbose


def create_processor(name: str, advanced: bool = False) -> BaseProcessor:
    """Factory function for creating processors."""
    if advanced:
        return AdvancedProcessor(name, verbose=True)
    return BaseProcessor(name)


def _internal_helper():
    return None
'''


@pytest.fixture
def sample_js_source() -> str:
    """Sample JavaScript source code for parser testing."""
    return '''import { useState, useEffect } from "react";
import axios from "axios";

const API_URL = "https://api.example.com";

export class UserService {
    constructor(baseUrl) {
        this.baseUrl = baseUrl;
    }

    async getUser(id) {
        const response = await axios.get(`${this.baseUrl}/users/${id}`);
        return response.data;
    }
}

export function formatName(first, last) {
    return `${first} ${last}`;
}

export const fetchData = async (url) => {
    const response = await fetch(url);
    return response.json();
};
'''
