"""Tests for image descriptor resolution."""

from __future__ import annotations

import pytest

from converge.errors import SpecValidationError
from converge.image import (
    ImageDescriptor,
    ImageNotApplicable,
    resolve_image,
    shared_gallery_image_id,
)

GALLERY = {
    "subscription_id": "sub-1",
    "resource_group": "rg-images",
    "gallery": "capzGallery",
    "name": "ubuntu-2204",
    "version": "1.22.4",
}

MARKETPLACE = {
    "publisher": "cncf-upstream",
    "offer": "capi",
    "sku": "ubuntu-2204-gen1",
    "version": "latest",
}


class TestResolveImage:
    """Tests for strict-precedence resolution."""

    def test_explicit_id_wins_over_marketplace(self) -> None:
        image = ImageDescriptor(id="/custom/image/id", **MARKETPLACE)

        ref = resolve_image(image)

        assert ref.id == "/custom/image/id"
        assert ref.publisher is None

    def test_explicit_id_wins_over_gallery(self) -> None:
        image = ImageDescriptor(id="/custom/image/id", **GALLERY)

        assert resolve_image(image).id == "/custom/image/id"

    def test_shared_gallery_path(self) -> None:
        ref = resolve_image(ImageDescriptor(**GALLERY))

        assert ref.id == (
            "/subscriptions/sub-1/resourceGroups/rg-images/providers/Microsoft.Compute"
            "/galleries/capzGallery/images/ubuntu-2204/versions/1.22.4"
        )

    def test_gallery_wins_over_marketplace(self) -> None:
        ref = resolve_image(ImageDescriptor(**{**MARKETPLACE, **GALLERY}))

        assert ref.id is not None
        assert "galleries/capzGallery" in ref.id
        assert ref.offer is None

    def test_incomplete_gallery_falls_back_to_marketplace(self) -> None:
        """A missing gallery coordinate is not an error when marketplace is complete."""
        coordinates = {k: v for k, v in GALLERY.items() if k != "gallery"}
        ref = resolve_image(ImageDescriptor(**{**coordinates, **MARKETPLACE}))

        assert ref.id is None
        assert ref.publisher == "cncf-upstream"
        assert ref.offer == "capi"
        assert ref.sku == "ubuntu-2204-gen1"
        assert ref.version == "latest"

    @pytest.mark.parametrize(
        ("missing", "label"),
        [("publisher", "Publisher"), ("offer", "Offer"), ("sku", "SKU"), ("version", "Version")],
    )
    def test_marketplace_missing_field_named(self, missing: str, label: str) -> None:
        fields = {k: v for k, v in MARKETPLACE.items() if k != missing}

        with pytest.raises(SpecValidationError) as exc_info:
            resolve_image(ImageDescriptor(**fields))

        assert f"{label} field is missing" in str(exc_info.value)

    def test_empty_descriptor_fails(self) -> None:
        with pytest.raises(SpecValidationError):
            resolve_image(ImageDescriptor())

    def test_aliases(self) -> None:
        image = ImageDescriptor.model_validate(
            {
                "subscriptionID": "sub-1",
                "resourceGroup": "rg-images",
                "gallery": "g",
                "name": "n",
                "version": "1",
            }
        )

        assert image.subscription_id == "sub-1"
        assert image.resource_group == "rg-images"


class TestSharedGalleryImageId:
    """Tests for the gallery step on its own."""

    @pytest.mark.parametrize("missing", list(GALLERY))
    def test_missing_coordinate_not_applicable(self, missing: str) -> None:
        coordinates = {k: v for k, v in GALLERY.items() if k != missing}

        with pytest.raises(ImageNotApplicable):
            shared_gallery_image_id(ImageDescriptor(**coordinates))
