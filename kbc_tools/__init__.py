"""
Script: kbc_tools package
What: Holds the container image build command and the helpers it drives.
Doing: Groups the CLI dispatcher, parameter binding, Containerfile discovery, and tool wrappers.
Why: Keeps build orchestration readable and testable instead of spreading it across shell steps.
Goal: Provide one clear home for building and publishing images with buildah and skopeo.
"""
