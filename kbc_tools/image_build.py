"""
Script: kbc_tools/image_build.py
What: Builds a container image with buildah and optionally pushes it.
Doing: Binds flags/env into settings, validates them, finds the Containerfile, builds, pushes, tags, and prints a JSON result.
Why: Gives pipelines one command with predictable inputs and one machine-readable output.
Goal: Produce the image and report `image_url` (and `digest` when pushed) on stdout.
"""

from __future__ import annotations

import argparse
import logging
import os
import stat
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TextIO

from kbc_tools.cliwrappers import BuildahCli, ImageBuilder, ImageCopier, ImagePusher, SkopeoCli
from kbc_tools.common import ValidationError
from kbc_tools.dockerfile import search_dockerfile
from kbc_tools.image_ref import get_image_name, is_image_ref_valid, is_tag_valid
from kbc_tools.params import (
    Parameter,
    ParameterRegistry,
    ParamKind,
    add_parameters,
    bind_parameters,
    cli_values_from_namespace,
)
from kbc_tools.results import BuildResults, ResultsWriter


BUILD_PARAMS = ParameterRegistry(
    [
        Parameter(
            name="containerfile",
            field="containerfile",
            short_name="f",
            env_var="KBC_BUILD_CONTAINERFILE",
            usage="Path to Containerfile. If not specified, uses Containerfile/Dockerfile "
            "from the context directory.",
        ),
        Parameter(
            name="context",
            field="context",
            short_name="c",
            env_var="KBC_BUILD_CONTEXT",
            default=".",
            usage="Build context directory, relative to the source directory.",
        ),
        Parameter(
            name="output-ref",
            field="output_ref",
            short_name="t",
            env_var="KBC_BUILD_OUTPUT_REF",
            required=True,
            usage="The reference of the output image - [registry/namespace/]name[:tag]. Required.",
        ),
        Parameter(
            name="push",
            field="push",
            env_var="KBC_BUILD_PUSH",
            kind=ParamKind.BOOL,
            default="false",
            usage="Push the built image to the registry.",
        ),
        Parameter(
            name="source",
            field="source",
            short_name="s",
            env_var="KBC_BUILD_SOURCE",
            default=".",
            usage="Source directory. The Containerfile must resolve to a path inside it.",
        ),
        Parameter(
            name="additional-tags",
            field="additional_tags",
            env_var="KBC_BUILD_ADDITIONAL_TAGS",
            kind=ParamKind.LIST,
            usage="Extra tags to apply to the pushed image (comma or space separated). "
            "Requires --push.",
        ),
    ]
)

EXAMPLES = """\
Examples:
  # Build using auto-detected Containerfile/Dockerfile in current directory
  kbc-tools image-build -t quay.io/myorg/myimage:latest

  # Build and push to registry
  kbc-tools image-build -t quay.io/myorg/myimage:latest --push

  # Build with explicit Containerfile and context
  kbc-tools image-build -f ./Containerfile -c ./myapp -t quay.io/myorg/myimage:v1.0.0

  # Build with additional buildah arguments
  kbc-tools image-build -t quay.io/myorg/myimage:latest -- --compat-volumes --force-rm
"""


@dataclass(frozen=True)
class BuildParams:
    output_ref: str
    containerfile: str = ""
    context: str = "."
    push: bool = False
    source: str = "."
    additional_tags: tuple[str, ...] = ()


class BuildState(Enum):
    INIT = "init"
    PARAMS_LOGGED = "params-logged"
    VALIDATED = "validated"
    FILE_DETECTED = "file-detected"
    BUILT = "built"
    PUSHED_OR_SKIPPED = "pushed-or-skipped"
    TAGGED_OR_SKIPPED = "tagged-or-skipped"
    RESULT_EMITTED = "result-emitted"


class Build:
    """
    One build run.

    Stages run strictly in order and the first failure stops the run.
    `state` is the last stage that completed, so after a failure it shows
    where the run stopped. Nothing is written to stdout unless every stage
    before emission succeeded.
    """

    def __init__(
        self,
        params: BuildParams,
        builder: ImageBuilder,
        pusher: ImagePusher,
        results_writer: ResultsWriter,
        *,
        extra_args: Sequence[str] = (),
        copier: ImageCopier | None = None,
        logger: logging.Logger | None = None,
        stdout: TextIO | None = None,
    ) -> None:
        self.params = params
        self.builder = builder
        self.pusher = pusher
        self.copier = copier
        self.results_writer = results_writer
        self.extra_args = tuple(extra_args)
        self.logger = logger or logging.getLogger(__name__)
        self.stdout = stdout

        self.state = BuildState.INIT
        self.context_dir = str(Path(params.source) / params.context)
        self.containerfile_path = ""
        self.digest = ""
        self.results: BuildResults | None = None

    def run(self) -> BuildResults:
        stages = (
            (BuildState.PARAMS_LOGGED, self.log_params),
            (BuildState.VALIDATED, self.validate_params),
            (BuildState.FILE_DETECTED, self.detect_containerfile),
            (BuildState.BUILT, self.build_image),
            (BuildState.PUSHED_OR_SKIPPED, self.push_image),
            (BuildState.TAGGED_OR_SKIPPED, self.apply_additional_tags),
        )
        for state, stage in stages:
            stage()
            self.state = state
        results = self.emit_results()
        self.state = BuildState.RESULT_EMITTED
        return results

    def log_params(self) -> None:
        if self.params.containerfile:
            self.logger.info("[param] Containerfile: %s", self.params.containerfile)
        self.logger.info("[param] Source: %s", self.params.source)
        self.logger.info("[param] Context: %s", self.params.context)
        self.logger.info("[param] OutputRef: %s", self.params.output_ref)
        self.logger.info("[param] Push: %s", str(self.params.push).lower())
        if self.params.additional_tags:
            self.logger.info("[param] AdditionalTags: %s", " ".join(self.params.additional_tags))
        if self.extra_args:
            self.logger.info("[param] Extra buildah args: %s", " ".join(self.extra_args))

    def validate_params(self) -> None:
        if not is_image_ref_valid(self.params.output_ref):
            raise ValidationError(f"output-ref '{self.params.output_ref}' is invalid")

        for tag in self.params.additional_tags:
            if not is_tag_valid(tag):
                raise ValidationError(f"additional-tags entry '{tag}' is not a valid tag")
        if self.params.additional_tags and not self.params.push:
            raise ValidationError("additional-tags can only be applied together with push")
        if self.params.additional_tags and self.copier is None:
            raise ValidationError("additional-tags requires a registry copy tool")

        try:
            context_stat = os.stat(self.context_dir)
        except FileNotFoundError as exc:
            raise ValidationError(f"context directory '{self.context_dir}' does not exist") from exc
        except OSError as exc:
            raise ValidationError(f"failed to stat context directory: {exc}") from exc
        if not stat.S_ISDIR(context_stat.st_mode):
            raise ValidationError(f"context path '{self.context_dir}' is not a directory")

    def detect_containerfile(self) -> None:
        path = search_dockerfile(
            self.params.source,
            self.params.context,
            self.params.containerfile,
        )
        self.containerfile_path = str(path)
        if self.params.containerfile:
            self.logger.info("Using containerfile: %s", self.containerfile_path)
        else:
            self.logger.info("Auto-detected containerfile: %s", self.containerfile_path)

    def build_image(self) -> None:
        self.logger.info("Building container image...")
        self.builder.build(
            self.containerfile_path,
            self.context_dir,
            self.params.output_ref,
            self.extra_args,
        )
        self.logger.info("Build completed successfully")

    def push_image(self) -> None:
        if not self.params.push:
            return
        self.logger.info("Pushing image to registry: %s", self.params.output_ref)
        self.digest = self.pusher.push(self.params.output_ref)
        self.logger.info("Push completed successfully")
        self.logger.info("Image digest: %s", self.digest)

    def apply_additional_tags(self) -> None:
        """
        Point each extra tag at the pushed image.

        The source is addressed by digest so every tag gets exactly the
        content that was just pushed, even if the main tag moves meanwhile.
        """
        if not self.params.additional_tags or self.copier is None:
            return

        repository = get_image_name(self.params.output_ref)
        source_ref = f"docker://{repository}@{self.digest}"
        for tag in self.params.additional_tags:
            destination_ref = f"docker://{repository}:{tag}"
            self.copier.copy(source_ref, destination_ref)
            self.logger.info("Applied tag: %s -> %s", source_ref, destination_ref)

    def emit_results(self) -> BuildResults:
        results = BuildResults(image_url=self.params.output_ref, digest=self.digest)
        # Serialize fully before writing so a failure never leaves partial output.
        result_json = self.results_writer.create_result_json(results)
        stream = self.stdout or sys.stdout
        stream.write(result_json + "\n")
        stream.flush()
        self.results = results
        return results


def split_extra_args(argv: Sequence[str]) -> tuple[list[str], list[str]]:
    """Split `[options] -- [buildah args]` at the first `--`."""
    argv = list(argv)
    if "--" in argv:
        index = argv.index("--")
        return argv[:index], argv[index + 1 :]
    return argv, []


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kbc-tools image-build",
        description="Build a container image using buildah. Optionally, push the built "
        "image to a registry using the --push flag. The command outputs the image URL "
        "and optionally the image digest (if pushing).",
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    add_parameters(parser, BUILD_PARAMS)
    return parser


def parse_build_params(
    argv: Sequence[str], env: Mapping[str, str] | None = None
) -> tuple[BuildParams, list[str]]:
    """Bind command-line options and environment into `BuildParams`."""
    own_args, extra_args = split_extra_args(argv)
    namespace = build_parser().parse_args(own_args)
    params = bind_parameters(
        BUILD_PARAMS,
        cli_values_from_namespace(namespace, BUILD_PARAMS),
        os.environ if env is None else env,
        BuildParams,
    )
    return params, extra_args


def main(argv: Sequence[str] | None = None) -> None:
    params, extra_args = parse_build_params(sys.argv[1:] if argv is None else argv)

    buildah = BuildahCli()
    # skopeo is only needed when there are tags to copy.
    copier = SkopeoCli() if params.additional_tags and params.push else None

    build = Build(
        params,
        builder=buildah,
        pusher=buildah,
        results_writer=ResultsWriter(),
        extra_args=extra_args,
        copier=copier,
    )
    build.run()


if __name__ == "__main__":
    main()
