"""ECR repository, registry login and image cleanup flows."""

from __future__ import annotations

import typing as typ

from opskit.aws import ecr
from opskit.errors import RemoteCallError
from opskit.flows.common import (
    EXIT_FAILED,
    EXIT_OK,
    finish,
    print_lines,
    require_aws,
    require_tools,
    show_environment,
)
from opskit.formatting import (
    PLACEHOLDER,
    Column,
    format_scalar,
    human_size,
    render_fields,
    render_table,
)
from opskit.provisioning import ProvisionOutcome, confirm_destroy, ensure

if typ.TYPE_CHECKING:
    from opskit.aws import AwsContext
    from opskit.console import Console

_DIGEST_PREVIEW = 12


def image_label(image: dict[str, typ.Any]) -> str:
    """Return the first tag of ``image``, or a short digest when untagged."""
    tags = image.get("imageTags") or []
    if tags:
        return str(tags[0])
    return str(image.get("imageDigest", PLACEHOLDER))[:_DIGEST_PREVIEW]


def create_repository_flow(  # noqa: PLR0913
    console: Console,
    aws: AwsContext,
    repo: str,
    *,
    scan_on_push: bool = True,
    tag_mutability: str = "MUTABLE",
    max_images: int = ecr.DEFAULT_LIFECYCLE_MAX_IMAGES,
) -> int:
    """Ensure ``repo`` exists with a lifecycle policy, then print its URI.

    The lifecycle policy is only attached to a repository created by this
    run; an existing repository keeps whatever policy it already has.
    """
    console.header(f"Setting Up ECR Repository: {repo}")
    show_environment(console, "ecr", aws.region)
    console.info(f"Repository: {repo}")
    console.info(f"Scan on Push: {str(scan_on_push).lower()}")
    console.info(f"Tag Mutability: {tag_mutability}")
    account_id = require_aws(console, aws)
    client = aws.client(ecr.SERVICE)

    def create() -> dict[str, typ.Any]:
        console.info(f"Repository '{repo}' does not exist. Creating...")
        return ecr.create_repository(
            client, repo, scan_on_push=scan_on_push, tag_mutability=tag_mutability
        )

    result = ensure(
        "ECR repository",
        repo,
        exists=lambda: ecr.repository_exists(client, repo),
        create=create,
    )
    exit_code = EXIT_OK
    if result.outcome is ProvisionOutcome.CREATED:
        console.success(f"Repository '{repo}' created")
        description = typ.cast("dict[str, typ.Any]", result.value)
        console.info(f"Setting lifecycle policy (keep last {max_images} images)...")
        try:
            ecr.set_lifecycle_policy(client, repo, max_images)
        except RemoteCallError as exc:
            console.warning(f"Failed to set lifecycle policy: {exc}")
            exit_code = EXIT_FAILED
        else:
            console.success("Lifecycle policy set")
    else:
        console.success(f"Repository '{repo}' already exists")
        description = ecr.describe_repository(client, repo) or {}
        console.section("Repository Information")
        console.line(f"  URI: {description.get('repositoryUri', PLACEHOLDER)}")
        console.line(f"  Created: {format_scalar(description.get('createdAt'))}")

    registry = ecr.registry_url(account_id, aws.region)
    finish(console, exit_code)
    console.section("Connection Information")
    console.line(f"  Repository:     {repo}")
    console.line(f"  Registry URL:   {registry}")
    console.line(f"  Repository URI: {description.get('repositoryUri', PLACEHOLDER)}")
    console.line(f"  Region:         {aws.region}")
    return exit_code


def show_repository_flow(console: Console, aws: AwsContext, repo: str) -> int:
    """Print repository settings and its images, newest first."""
    console.header(f"ECR Repository: {repo}")
    require_aws(console, aws)
    client = aws.client(ecr.SERVICE)
    description = ecr.describe_repository(client, repo)
    if description is None:
        console.error(f"Repository '{repo}' not found")
        return EXIT_FAILED

    console.section("Repository Information")
    print_lines(
        console,
        render_fields(
            description,
            [
                ("Name", "repositoryName"),
                ("URI", "repositoryUri"),
                ("ARN", "repositoryArn"),
                ("Created", "createdAt"),
                ("Scan on Push", "imageScanningConfiguration.scanOnPush"),
                ("Tag Mutability", "imageTagMutability"),
            ],
        ),
    )

    console.section("Images")
    images = ecr.list_images(client, repo)
    if not images:
        console.info("No images found")
        return EXIT_OK
    console.info(f"Found {len(images)} image(s)")
    print_lines(
        console,
        render_table(
            images,
            [
                Column("TAG", image_label, 20),
                Column("SIZE", lambda i: human_size(i.get("imageSizeInBytes", 0)), 15),
                Column("PUSHED", "imagePushedAt", 25),
                Column("DIGEST", lambda i: str(i.get("imageDigest", ""))[7:19]),
            ],
        ),
    )
    return EXIT_OK


def list_repositories_flow(console: Console, aws: AwsContext) -> int:
    """Print every repository name and URI."""
    console.header("ECR Repositories")
    require_aws(console, aws)
    repositories = ecr.list_repositories(aws.client(ecr.SERVICE))
    if not repositories:
        console.info("No repositories found")
        return EXIT_OK
    console.success(f"Found {len(repositories)} repository(ies)")
    for repository in repositories:
        console.line(
            f"  {repository.get('repositoryName')} - {repository.get('repositoryUri')}"
        )
    return EXIT_OK


def login_flow(console: Console, aws: AwsContext) -> int:
    """Log docker in to the account's registry."""
    console.header("Docker Login to ECR")
    require_tools(console, "docker")
    account_id = require_aws(console, aws)
    registry = ecr.registry_url(account_id, aws.region)
    console.info(f"Account ID: {account_id}")
    console.info(f"Region: {aws.region}")
    console.info(f"Registry: {registry}")
    console.blank()
    console.info("Logging in to ECR...")
    try:
        ecr.docker_login(registry, ecr.login_password(aws.client(ecr.SERVICE)))
    except RemoteCallError as exc:
        console.error(f"Login failed: {exc}")
        console.line("  1. Verify AWS credentials are configured")
        console.line("  2. Check IAM permissions for ecr:GetAuthorizationToken")
        console.line("  3. Ensure Docker daemon is running")
        return EXIT_FAILED
    console.success("Login successful!")
    console.info("Token is valid for 12 hours")
    console.info("Example push:")
    console.info(f"  docker tag my-image:latest {registry}/my-repo:latest")
    console.info(f"  docker push {registry}/my-repo:latest")
    return EXIT_OK


def cleanup_flow(  # noqa: PLR0913
    console: Console,
    aws: AwsContext,
    repo: str,
    *,
    keep: int = ecr.DEFAULT_KEEP_COUNT,
    dry_run: bool = False,
    force: bool = False,
) -> int:
    """Delete all but the newest ``keep`` images of ``repo``.

    A dry run lists what would go. Otherwise the deletion is confirmed
    first; a declined prompt deletes nothing and still exits 0.
    """
    console.header(f"ECR Cleanup: {repo}")
    require_aws(console, aws)
    client = aws.client(ecr.SERVICE)
    console.section(f"Repository: {repo}")
    images = ecr.list_images(client, repo)
    console.info(f"Total images: {len(images)}")
    console.info(f"Keeping: {keep}")
    doomed = ecr.images_to_delete(images, keep)
    if not doomed:
        console.success("No cleanup needed")
        return EXIT_OK
    console.info(f"To delete: {len(doomed)}")

    if dry_run:
        console.info("[DRY RUN] Would delete:")
        for image in doomed:
            pushed = format_scalar(image.get("imagePushedAt"))
            console.line(f"  {image_label(image)} pushed {pushed}")
        return EXIT_OK

    if not confirm_destroy(console, f"Delete {len(doomed)} images?", force=force):
        return EXIT_OK
    deleted = ecr.delete_images(client, repo, doomed)
    console.success(f"Deleted {deleted} images")
    return EXIT_OK
