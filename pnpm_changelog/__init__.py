"""pnpm-changelog: per-package changelogs and dependency-aware version bumps for pnpm workspaces."""
