"""Azure DevOps build reporting and pull request review comment tooling."""
