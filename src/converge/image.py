"""Image resolution for virtual machines.

An image descriptor addresses a VM image in one of three ways, tried in
fixed priority order:

1. Explicit resource ID, used verbatim
2. Shared Image Gallery coordinates (subscription, resource group, gallery,
   image name, version), rendered into a gallery image version ID
3. Marketplace reference (publisher, offer, SKU, version)

Precedence is strict: a descriptor that carries fields for several modes
resolves with the highest-priority mode that is complete.
"""

from __future__ import annotations

import logging

from azure.mgmt.compute.models import ImageReference
from pydantic import BaseModel, Field

from .errors import SpecValidationError

logger = logging.getLogger(__name__)

SHARED_GALLERY_IMAGE_ID_FORMAT = (
    "/subscriptions/{subscription_id}/resourceGroups/{resource_group}"
    "/providers/Microsoft.Compute/galleries/{gallery}/images/{name}/versions/{version}"
)


class ImageNotApplicable(Exception):
    """A resolution step does not apply to the descriptor; try the next one."""

    pass


class ImageDescriptor(BaseModel):
    """Abstract VM image reference as declared by the user."""

    model_config = {"extra": "ignore", "frozen": True, "populate_by_name": True}

    id: str | None = None

    # Shared Image Gallery
    subscription_id: str | None = Field(None, alias="subscriptionID")
    resource_group: str | None = Field(None, alias="resourceGroup")
    gallery: str | None = None
    name: str | None = None

    # Marketplace
    publisher: str | None = None
    offer: str | None = None
    sku: str | None = None

    # Shared by gallery and marketplace modes
    version: str | None = None


def shared_gallery_image_id(image: ImageDescriptor) -> str:
    """Build the resource ID of a Shared Image Gallery image version.

    Raises:
        ImageNotApplicable: If any of the five gallery coordinates is missing.
    """
    coordinates = (
        ("subscription ID", image.subscription_id),
        ("resource group", image.resource_group),
        ("gallery", image.gallery),
        ("name", image.name),
        ("version", image.version),
    )
    for label, value in coordinates:
        if value is None:
            raise ImageNotApplicable(
                f"Image {label} cannot be nil when specifying an image "
                "from an Azure Shared Image Gallery"
            )

    return SHARED_GALLERY_IMAGE_ID_FORMAT.format(
        subscription_id=image.subscription_id,
        resource_group=image.resource_group,
        gallery=image.gallery,
        name=image.name,
        version=image.version,
    )


def marketplace_image_reference(image: ImageDescriptor) -> ImageReference:
    """Build a marketplace image reference.

    Raises:
        SpecValidationError: Naming the first missing field.
    """
    for label, value in (
        ("Publisher", image.publisher),
        ("Offer", image.offer),
        ("SKU", image.sku),
        ("Version", image.version),
    ):
        if value is None:
            raise SpecValidationError(
                f"Image reference cannot be generated, as {label} field is missing"
            )

    return ImageReference(
        publisher=image.publisher,
        offer=image.offer,
        sku=image.sku,
        version=image.version,
    )


def resolve_image(image: ImageDescriptor) -> ImageReference:
    """Resolve a descriptor into a concrete image reference.

    Raises:
        SpecValidationError: If no addressing mode is complete.
    """
    if image.id is not None:
        return ImageReference(id=image.id)

    try:
        return ImageReference(id=shared_gallery_image_id(image))
    except ImageNotApplicable as e:
        logger.debug("Shared gallery image not applicable", extra={"reason": str(e)})

    return marketplace_image_reference(image)
