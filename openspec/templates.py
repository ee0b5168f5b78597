"""Instruction templates written by ``init`` and refreshed by ``update``."""

from __future__ import annotations

import textwrap
from typing import Dict, Optional

SLASH_COMMAND_IDS = ("proposal", "apply", "archive")


def _render(template: str) -> str:
    return textwrap.dedent(template).strip() + "\n"


AGENTS_TEMPLATE = _render(
    """
    # OpenSpec Instructions

    Instructions for AI coding assistants using OpenSpec for spec-driven development.

    ## TL;DR Quick Checklist

    - Search existing work: `openspec list --specs`, `openspec list` (`rg` only for full-text search)
    - Decide scope: new capability vs modify an existing capability
    - Pick a unique verb-led `change-id` (kebab-case: `add-`, `update-`, `remove-`, `refactor-`)
    - Scaffold: `proposal.md`, `tasks.md`, `design.md` (only if needed), and delta specs per affected capability
    - Write deltas: use `## ADDED|MODIFIED|REMOVED|RENAMED Requirements`; include at least one `#### Scenario:` per requirement
    - Validate: `openspec validate [change-id] --strict` and fix issues
    - Request approval: do not start implementation until the proposal is approved

    ## Three-Stage Workflow

    ### Stage 1: Creating Changes
    Create a proposal when you need to add features, make breaking changes, change architecture
    or patterns, or change security behavior. Skip proposals for bug fixes that restore intended
    behavior, typos, formatting and comments.

    1. Review `openspec/project.md`, `openspec list` and `openspec list --specs`.
    2. Choose a unique verb-led `change-id` and scaffold `proposal.md`, `tasks.md`, optional
       `design.md`, and spec deltas under `openspec/changes/<id>/`.
    3. Draft spec deltas using `## ADDED|MODIFIED|REMOVED Requirements` with at least one
       `#### Scenario:` per requirement.
    4. Run `openspec validate <id> --strict` and resolve any issues before sharing the proposal.

    ### Stage 2: Implementing Changes
    1. Read `proposal.md`, `design.md` (if present) and `tasks.md`.
    2. Implement tasks sequentially.
    3. Update the checklist so every task is marked `- [x]` once it is really done.

    ### Stage 3: Archiving Changes
    After deployment, run `openspec archive <change-id> --yes` to apply the deltas to
    `openspec/specs/` and move the change to `changes/archive/YYYY-MM-DD-<change-id>/`.
    Use `--skip-specs` for tooling-only changes.

    ## Directory Structure

    ```
    openspec/
    ├── project.md              # Project conventions
    ├── specs/                  # Current truth: what IS built
    │   └── [capability]/
    │       └── spec.md         # Requirements and scenarios
    └── changes/                # Proposals: what SHOULD change
        ├── [change-name]/
        │   ├── proposal.md     # Why, what, impact
        │   ├── tasks.md        # Implementation checklist
        │   ├── design.md       # Technical decisions (optional)
        │   └── specs/
        │       └── [capability]/
        │           └── spec.md # ADDED/MODIFIED/REMOVED/RENAMED
        └── archive/            # Completed changes
    ```

    ## Spec File Format

    ```markdown
    # Change: Brief description

    ## Why
    One or two sentences on the problem or opportunity.

    ## What Changes
    - Bullet list of changes
    - **auth:** Add two-factor authentication
    ```

    Delta spec:

    ```markdown
    ## ADDED Requirements
    ### Requirement: Two-Factor Authentication
    Users MUST provide a second factor during login.

    #### Scenario: OTP required
    - **WHEN** valid credentials are provided
    - **THEN** an OTP challenge is required

    ## RENAMED Requirements
    - FROM: `### Requirement: Login`
    - TO: `### Requirement: User Authentication`
    ```

    Every requirement MUST contain SHALL or MUST and MUST have at least one scenario using a
    level-4 `#### Scenario:` header. MODIFIED requirements must contain the full updated text,
    and when a requirement is renamed in the same change MODIFIED must use the new name.

    ## CLI Commands

    ```bash
    openspec list                  # Active changes
    openspec list --specs          # Specifications
    openspec show [item]           # Display a change or spec
    openspec validate [item]       # Validate a change or spec
    openspec archive <change-id>   # Archive after deployment
    openspec view                  # Dashboard
    ```

    Remember: specs are truth, changes are proposals. Keep them in sync.
    """
)


PROJECT_TEMPLATE = _render(
    """
    # Project Context

    ## Purpose
    [Describe your project's purpose and goals]

    ## Tech Stack
    - [List your primary technologies]

    ## Project Conventions

    ### Code Style
    [Describe your code style preferences, formatting rules, and naming conventions]

    ### Architecture Patterns
    [Document your architectural decisions and patterns]

    ### Testing Strategy
    [Explain your testing approach and requirements]

    ### Git Workflow
    [Describe your branching strategy and commit conventions]

    ## Domain Context
    [Add domain-specific knowledge that AI assistants need to understand]

    ## Important Constraints
    [List any technical, business, or regulatory constraints]

    ## External Dependencies
    [Document key external services, APIs, or systems]
    """
)


ROOT_STUB_TEMPLATE = textwrap.dedent(
    """
    # OpenSpec Instructions

    These instructions are for AI assistants working in this project.

    Always open `@/openspec/AGENTS.md` when the request:
    - Mentions planning or proposals (words like proposal, spec, change, plan)
    - Introduces new capabilities, breaking changes, architecture shifts, or big performance/security work
    - Sounds ambiguous and you need the authoritative spec before coding

    Use `@/openspec/AGENTS.md` to learn:
    - How to create and apply change proposals
    - Spec format and conventions
    - Project structure and guidelines

    Keep this managed block so 'openspec update' can refresh the instructions.
    """
).strip()

CLAUDE_TEMPLATE = ROOT_STUB_TEMPLATE
CLINE_TEMPLATE = ROOT_STUB_TEMPLATE


_BASE_GUARDRAILS = textwrap.dedent(
    """
    **Guardrails**
    - Favor straightforward, minimal implementations first and add complexity only when it is requested or clearly required.
    - Keep changes tightly scoped to the requested outcome.
    - Refer to `openspec/AGENTS.md` (located inside the `openspec/` directory; run `ls openspec` or `openspec update` if you don't see it) for additional OpenSpec conventions or clarifications.
    """
).strip()

_PROPOSAL_GUARDRAILS = (
    _BASE_GUARDRAILS
    + "\n- Identify any vague or ambiguous details and ask the necessary follow-up questions before editing files."
)

_PROPOSAL_STEPS = textwrap.dedent(
    """
    **Steps**
    1. Review `openspec/project.md`, run `openspec list` and `openspec list --specs`, and inspect related code or docs (e.g., via `rg`/`ls`) to ground the proposal in current behaviour; note any gaps that require clarification.
    2. Choose a unique verb-led `change-id` and scaffold `proposal.md`, `tasks.md`, and `design.md` (when needed) under `openspec/changes/<id>/`.
    3. Map the change into concrete capabilities or requirements, breaking multi-scope efforts into distinct spec deltas with clear relationships and sequencing.
    4. Capture architectural reasoning in `design.md` when the solution spans multiple systems, introduces new patterns, or demands trade-off discussion before committing to specs.
    5. Draft spec deltas in `changes/<id>/specs/<capability>/spec.md` (one folder per capability) using `## ADDED|MODIFIED|REMOVED Requirements` with at least one `#### Scenario:` per requirement and cross-reference related capabilities when relevant.
    6. Draft `tasks.md` as an ordered list of small, verifiable work items that deliver user-visible progress, include validation (tests, tooling), and highlight dependencies or parallelizable work.
    7. Validate with `openspec validate <id> --strict` and resolve every issue before sharing the proposal.
    """
).strip()

_PROPOSAL_REFERENCES = textwrap.dedent(
    """
    **Reference**
    - Use `openspec show <id> --json --deltas-only` or `openspec show <spec> --type spec` to inspect details when validation fails.
    - Search existing requirements with `rg -n "Requirement:|Scenario:" openspec/specs` before writing new ones.
    - Explore the codebase with `rg <keyword>`, `ls`, or direct file reads so proposals align with current implementation realities.
    """
).strip()

_APPLY_STEPS = textwrap.dedent(
    """
    **Steps**
    Track these steps as TODOs and complete them one by one.
    1. Read `changes/<id>/proposal.md`, `design.md` (if present), and `tasks.md` to confirm scope and acceptance criteria.
    2. Work through tasks sequentially, keeping edits minimal and focused on the requested change.
    3. Confirm completion before updating statuses: make sure every item in `tasks.md` is finished.
    4. Update the checklist after all work is done so each task is marked `- [x]` and reflects reality.
    5. Reference `openspec list` or `openspec show <item>` when additional context is required.
    """
).strip()

_APPLY_REFERENCES = textwrap.dedent(
    """
    **Reference**
    - Use `openspec show <id> --json --deltas-only` if you need additional context from the proposal while implementing.
    """
).strip()

_ARCHIVE_STEPS = textwrap.dedent(
    """
    **Steps**
    1. Determine the change ID to archive:
       - If this prompt already includes a specific change ID, use that value after trimming whitespace.
       - If the conversation references a change loosely (for example by title or summary), run `openspec list` to surface likely IDs, share the relevant candidates, and confirm which one the user intends.
       - Otherwise, review the conversation, run `openspec list`, and ask the user which change to archive; wait for a confirmed change ID before proceeding.
       - If you still cannot identify a single change ID, stop and tell the user you cannot archive anything yet.
    2. Validate the change ID by running `openspec list` (or `openspec show <id>`) and stop if the change is missing, already archived, or otherwise not ready to archive.
    3. Run `openspec archive <id> --yes` so the CLI moves the change and applies spec updates without prompts (use `--skip-specs` only for tooling-only work).
    4. Review the command output to confirm the target specs were updated and the change landed in `changes/archive/`.
    5. Validate with `openspec validate --strict` and inspect with `openspec show <id>` if anything looks off.
    """
).strip()

_ARCHIVE_REFERENCES = textwrap.dedent(
    """
    **Reference**
    - Use `openspec list` to confirm change IDs before archiving.
    - Inspect refreshed specs with `openspec list --specs` and address any validation issues before handing off.
    """
).strip()

SLASH_COMMAND_BODIES: Dict[str, str] = {
    "proposal": "\n\n".join([_PROPOSAL_GUARDRAILS, _PROPOSAL_STEPS, _PROPOSAL_REFERENCES]),
    "apply": "\n\n".join([_BASE_GUARDRAILS, _APPLY_STEPS, _APPLY_REFERENCES]),
    "archive": "\n\n".join([_BASE_GUARDRAILS, _ARCHIVE_STEPS, _ARCHIVE_REFERENCES]),
}

SLASH_COMMAND_DESCRIPTIONS: Dict[str, str] = {
    "proposal": "Scaffold a new OpenSpec change and validate strictly.",
    "apply": "Implement an approved OpenSpec change and keep tasks in sync.",
    "archive": "Archive a deployed OpenSpec change and update specs.",
}


def slash_command_body(command_id: str) -> str:
    return SLASH_COMMAND_BODIES[command_id]


def project_template(context: Optional[Dict[str, str]] = None) -> str:
    """``project.md`` with optional ``description``/``tech_stack`` filled in."""
    content = PROJECT_TEMPLATE
    context = context or {}
    if context.get("description"):
        content = content.replace("[Describe your project's purpose and goals]", context["description"])
    if context.get("tech_stack"):
        content = content.replace("- [List your primary technologies]", f"- {context['tech_stack']}")
    return content
