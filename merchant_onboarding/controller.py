"""Two-step merchant registration form.

The controller owns the form data and UI state, runs validation, and
mediates every side effect (location lookup, merchant creation, QR
rendering, QR download) through injected collaborators. Failures never
propagate to the caller; they end up in ``state.error``.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Mapping, Optional

from .api_client import MerchantApiClient
from .config import RuntimeConfig, parse_query_params
from .downloads import FileDownloader
from .location import (
    ADDRESS_NOT_FOUND,
    GeolocationError,
    GeolocationPermissionDenied,
    GeolocationUnavailable,
    GeolocationUnsupported,
    LocationProvider,
    ReverseGeocodeError,
    ReverseGeocoder,
)
from .models import FormData, FormStep, SubmissionResult, UIState
from .qr import decode_data_url, render_qr_data_url
from .utils import describe_exception, qr_filename
from .validation import validate_details, validate_payment

logger = logging.getLogger(__name__)

MSG_CAMPAIGN_REQUIRED = "Campaign ID is required"
MSG_LOCATION_DENIED = "Location access denied. Please enable location sharing and refresh the page"
MSG_LOCATION_UNSUPPORTED = "Geolocation is not supported by your browser"
MSG_LOCATION_FAILED = "Unable to retrieve your location"
MSG_ADDRESS_FAILED = "Failed to get address"
MSG_CREATED = "Merchant created successfully!"
MSG_CREATE_ERROR = "Error in creating merchant"
MSG_LOOKUP_FAILED = "Failed to fetch merchant QR code"
MSG_QR_FAILED = "Failed to generate QR code"
MSG_NO_QR = "No QR code available to download"
MSG_DOWNLOAD_FAILED = "Failed to download QR code"


class RegistrationFormController:
    def __init__(
        self,
        config: RuntimeConfig,
        query: str | Mapping[str, Any] | None = None,
        *,
        api: MerchantApiClient,
        location_provider: LocationProvider,
        downloader: FileDownloader,
        geocoder: Optional[ReverseGeocoder] = None,
    ) -> None:
        self.config = config
        self.query = parse_query_params(query)
        self.api = api
        self.location_provider = location_provider
        self.downloader = downloader
        self.geocoder = geocoder

        self.form = self._initial_form()
        self.state = UIState()
        self.result: Optional[SubmissionResult] = None
        self.submitted: Optional[FormData] = None

    @property
    def step(self) -> FormStep:
        return self.state.step

    def _initial_form(self) -> FormData:
        return FormData.initial(self.query.campaign_id, self.query.company)

    # -- lifecycle -----------------------------------------------------------

    async def mount(self) -> None:
        self.form = self._initial_form()
        self.state = UIState()
        self.result = None
        await self.detect_location()
        if not self.query.campaign_id:
            if self.state.error:
                logger.warning("Location problem hidden by missing campaign: %s", self.state.error)
            else:
                logger.warning("Form opened without a campaign identifier")
            self.state.error = MSG_CAMPAIGN_REQUIRED

    async def detect_location(self) -> None:
        self.state.clear_messages()
        self.state.location_loading = True
        try:
            if self.config.location_timeout is None:
                await self._locate()
            else:
                await asyncio.wait_for(self._locate(), self.config.location_timeout)
        except GeolocationPermissionDenied:
            self.state.error = MSG_LOCATION_DENIED
        except GeolocationUnsupported as exc:
            logger.info("Geolocation unsupported: %s", exc)
            self.state.error = MSG_LOCATION_UNSUPPORTED
        except ReverseGeocodeError as exc:
            logger.warning("%s", exc)
            self.state.error = MSG_ADDRESS_FAILED
        except (GeolocationError, asyncio.TimeoutError) as exc:
            logger.warning("Location lookup failed: %s", describe_exception(exc))
            self.state.error = MSG_LOCATION_FAILED
        finally:
            self.state.location_loading = False

    async def _locate(self) -> None:
        try:
            coords = await self.location_provider.current_position()
        except GeolocationError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise GeolocationUnavailable(describe_exception(exc)) from exc

        self.form.latitude = coords.latitude
        self.form.longitude = coords.longitude
        logger.info("Location detected: %s, %s", coords.latitude, coords.longitude)

        if self.geocoder is None:
            return
        address = await self.geocoder.address_for(coords.latitude, coords.longitude)
        self.form.address = address or ADDRESS_NOT_FOUND

    # -- input ---------------------------------------------------------------

    def handle_change(self, name: str, value: Optional[str]) -> None:
        attr = FormData.field_for(name)
        if attr is None:
            logger.warning("Ignoring change for unknown field %r", name)
            return
        setattr(self.form, attr, (value or "").strip())
        self.state.error = ""

    def back(self) -> None:
        if self.state.step is FormStep.PAYMENT:
            self.state.move_to(FormStep.DETAILS)
            self.state.error = ""

    # -- submission ----------------------------------------------------------

    async def submit(self) -> FormStep:
        if not self.state.can_submit:
            logger.info(
                "Submit ignored (loading=%s, location_loading=%s)",
                self.state.loading,
                self.state.location_loading,
            )
            return self.state.step

        if self.state.step is FormStep.DONE:
            self.close_dialog()

        self.state.clear_messages()

        if self.state.step is FormStep.DETAILS:
            error = validate_details(self.form)
            if error:
                self.state.error = error
            else:
                self.state.move_to(FormStep.PAYMENT)
            return self.state.step

        # step-1 fields stay editable on the payment step
        error = validate_details(self.form)
        if error:
            self.state.error = error
            self.state.move_to(FormStep.DETAILS)
            return self.state.step

        error = validate_payment(self.form)
        if error:
            self.state.error = error
            return self.state.step

        await self._create_merchant()
        return self.state.step

    async def _create_merchant(self) -> None:
        self.state.move_to(FormStep.SUBMITTING)
        self.state.loading = True
        self.result = None
        try:
            try:
                result = await self.api.create_merchant(self.form)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Merchant creation failed: %s", describe_exception(exc))
                self.state.error = str(exc) or MSG_CREATE_ERROR
                self.state.move_to(FormStep.PAYMENT)
                return

            self.result = result
            self.submitted = self.form.copy()
            self.state.success = MSG_CREATED
            logger.info(
                "Merchant created: id=%s code=%s",
                result.merchant.id,
                result.merchant.merchant_code or "-",
            )

            qr_link = await self._resolve_qr_link(result)
            if qr_link:
                await self._render_qr(qr_link)

            self.form = self._initial_form()
            self.state.move_to(FormStep.DONE)
            self.state.dialog_open = True
        finally:
            self.state.loading = False

    async def _resolve_qr_link(self, result: SubmissionResult) -> str:
        link = result.merchant.qr_link
        if not self.config.resolve_qr_via_lookup or not result.merchant.merchant_code:
            return link
        try:
            found = await self.api.find_qr_link(self.form.campaign_id, result.merchant.merchant_code)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Merchant lookup failed: %s", describe_exception(exc))
            self.state.error = MSG_LOOKUP_FAILED
            return link
        return found or link

    async def _render_qr(self, link: str) -> None:
        self.state.qr_loading = True
        try:
            self.state.qr_image = await asyncio.to_thread(render_qr_data_url, link)
        except Exception as exc:  # noqa: BLE001
            logger.error("QR rendering failed: %s", describe_exception(exc))
            self.state.qr_image = None
            self.state.error = MSG_QR_FAILED
        finally:
            self.state.qr_loading = False

    # -- completion dialog ---------------------------------------------------

    def download_qr(self) -> Optional[Path]:
        if not self.state.qr_image or self.result is None:
            self.state.error = MSG_NO_QR
            return None

        name = self.result.merchant.merchant_name
        if not name and self.submitted is not None:
            name = self.submitted.merchant_name
        try:
            path = self.downloader.save(qr_filename(name), decode_data_url(self.state.qr_image))
        except (OSError, ValueError) as exc:
            logger.error("QR download failed: %s", describe_exception(exc))
            self.state.error = MSG_DOWNLOAD_FAILED
            return None
        logger.info("QR saved to %s", path)
        return path

    def close_dialog(self) -> None:
        self.state.qr_image = None
        self.state.dialog_open = False
        if self.state.step is FormStep.DONE:
            self.state.move_to(FormStep.DETAILS)
