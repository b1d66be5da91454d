"""ECR repository, image and registry login operations."""

from __future__ import annotations

import base64
import datetime as dt
import json
import subprocess
import typing as typ

from botocore.exceptions import ClientError

from opskit.aws.session import call, is_not_found, paginate
from opskit.errors import RemoteCallError

SERVICE = "ecr"
DEFAULT_LIFECYCLE_MAX_IMAGES = 30
DEFAULT_KEEP_COUNT = 10

_DOCKER_LOGIN_TIMEOUT = 60
# batch_delete_image accepts at most 100 image ids per call.
_DELETE_BATCH_SIZE = 100
_EPOCH = dt.datetime.min.replace(tzinfo=dt.UTC)


def describe_repository(client: typ.Any, repo: str) -> dict[str, typ.Any] | None:  # noqa: ANN401
    """Return the repository description, or ``None`` when absent."""
    try:
        response = client.describe_repositories(repositoryNames=[repo])
    except ClientError as exc:
        if is_not_found(exc):
            return None
        raise RemoteCallError.from_client_error(
            SERVICE, "describe_repositories", exc
        ) from exc
    repositories = response.get("repositories", [])
    return repositories[0] if repositories else None


def repository_exists(client: typ.Any, repo: str) -> bool:  # noqa: ANN401
    """Return whether repository ``repo`` exists."""
    return describe_repository(client, repo) is not None


def create_repository(
    client: typ.Any,  # noqa: ANN401
    repo: str,
    *,
    scan_on_push: bool = True,
    tag_mutability: str = "MUTABLE",
) -> dict[str, typ.Any]:
    """Create a repository and return its description."""
    response = call(
        client,
        SERVICE,
        "create_repository",
        repositoryName=repo,
        imageScanningConfiguration={"scanOnPush": scan_on_push},
        imageTagMutability=tag_mutability,
    )
    return response.get("repository", {})


def lifecycle_policy(max_images: int = DEFAULT_LIFECYCLE_MAX_IMAGES) -> str:
    """Return a policy expiring all but the newest ``max_images`` images."""
    return json.dumps(
        {
            "rules": [
                {
                    "rulePriority": 1,
                    "description": f"Keep only last {max_images} images",
                    "selection": {
                        "tagStatus": "any",
                        "countType": "imageCountMoreThan",
                        "countNumber": max_images,
                    },
                    "action": {"type": "expire"},
                }
            ]
        }
    )


def set_lifecycle_policy(
    client: typ.Any,  # noqa: ANN401
    repo: str,
    max_images: int = DEFAULT_LIFECYCLE_MAX_IMAGES,
) -> None:
    """Attach :func:`lifecycle_policy` to ``repo``."""
    call(
        client,
        SERVICE,
        "put_lifecycle_policy",
        repositoryName=repo,
        lifecyclePolicyText=lifecycle_policy(max_images),
    )


def list_repositories(client: typ.Any) -> list[dict[str, typ.Any]]:  # noqa: ANN401
    """Return every repository in the registry."""
    return list(paginate(client, SERVICE, "describe_repositories", "repositories"))


def list_images(client: typ.Any, repo: str) -> list[dict[str, typ.Any]]:  # noqa: ANN401
    """Return image details for ``repo``, newest push first."""
    images = list(
        paginate(
            client, SERVICE, "describe_images", "imageDetails", repositoryName=repo
        )
    )
    return sorted(
        images, key=lambda image: image.get("imagePushedAt") or _EPOCH, reverse=True
    )


def images_to_delete(
    images: list[dict[str, typ.Any]], keep: int = DEFAULT_KEEP_COUNT
) -> list[dict[str, typ.Any]]:
    """Return the images beyond the newest ``keep`` of a newest-first list."""
    if keep < 0:
        msg = f"keep must be zero or greater, got {keep}"
        raise ValueError(msg)
    return images[keep:]


def delete_images(
    client: typ.Any,  # noqa: ANN401
    repo: str,
    images: list[dict[str, typ.Any]],
) -> int:
    """Delete ``images`` by digest and return how many were removed."""
    deleted = 0
    for start in range(0, len(images), _DELETE_BATCH_SIZE):
        batch = images[start : start + _DELETE_BATCH_SIZE]
        response = call(
            client,
            SERVICE,
            "batch_delete_image",
            repositoryName=repo,
            imageIds=[{"imageDigest": image["imageDigest"]} for image in batch],
        )
        deleted += len(response.get("imageIds", []))
    return deleted


def registry_url(account_id: str, region: str) -> str:
    """Return the registry host for an account and region."""
    return f"{account_id}.dkr.ecr.{region}.amazonaws.com"


def login_password(client: typ.Any) -> str:  # noqa: ANN401
    """Return the docker login password from an ECR authorization token."""
    response = call(client, SERVICE, "get_authorization_token")
    data = response.get("authorizationData", [])
    if not data:
        msg = "ECR returned no authorization data"
        raise RemoteCallError(
            msg, service=SERVICE, operation="get_authorization_token"
        )
    token = base64.b64decode(data[0]["authorizationToken"]).decode("utf-8")
    # The token decodes to "AWS:<password>".
    return token.split(":", 1)[1]


def docker_login(registry: str, password: str) -> None:
    """Log docker in to ``registry``, passing the password on stdin.

    Raises
    ------
    RemoteCallError
        If ``docker login`` fails or times out.

    """
    try:
        # S603/S607: docker via PATH is standard; registry derived from account
        subprocess.run(  # noqa: S603
            [  # noqa: S607
                "docker",
                "login",
                "--username",
                "AWS",
                "--password-stdin",
                registry,
            ],
            input=password,
            capture_output=True,
            text=True,
            check=True,
            timeout=_DOCKER_LOGIN_TIMEOUT,
        )
    except (subprocess.CalledProcessError, subprocess.TimeoutExpired) as exc:
        raise RemoteCallError.from_process(exc) from exc
