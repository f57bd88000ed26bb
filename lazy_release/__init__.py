"""lazy-release: release PRs and changelogs for uv workspace monorepos."""
