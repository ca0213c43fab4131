"""Shared pytest fixtures.

Run pytest from the project root; pythonpath in pyproject.toml puts src/ on
the import path.
"""

import pytest

from code_commandments.domain.context import (
    DeclarationTree,
    DeclaredEntity,
    DeclaredMember,
    DeclaredStatement,
)

SINGLE_FILE_COMPONENT = """<template>
  <div v-if="ready">{{ title }}</div>
</template>

<script setup lang="ts">
const title = 'Hello'
console.log(title)
</script>
"""


@pytest.fixture
def component_text() -> str:
    """A document with both a presentation and a behavior region."""
    return SINGLE_FILE_COMPONENT


@pytest.fixture
def controller_tree() -> DeclarationTree:
    """Declarations of a small controller class, as a parser would report them."""
    constructor = DeclaredMember(
        name="__init__",
        line=2,
        end_line=4,
        statements=(
            DeclaredStatement(kind="assign", line=3, end_line=3, source="self.repo = repo",
                              targets=("self.repo",)),
            DeclaredStatement(kind="assign", line=4, end_line=4, source="self.user = auth.user()",
                              targets=("self.user",), calls=("auth.user",)),
        ),
    )
    short = DeclaredMember(name="show", line=6, end_line=7)
    long = DeclaredMember(name="index", line=9, end_line=14)
    hidden = DeclaredMember(name="_helper", line=16, end_line=17)
    entity = DeclaredEntity(
        name="UserController",
        line=1,
        end_line=17,
        bases=("framework.Controller",),
        members=(constructor, short, long, hidden),
    )
    return DeclarationTree(path="app/user_controller.py", entities=(entity,))
