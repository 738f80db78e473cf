"""Booking wizard endpoints"""
import logging
from fastapi import APIRouter, Depends, HTTPException, Query, status

from booking_wizard.core.errors import InvalidTransition, PreconditionError, VehicleNotFound
from booking_wizard.core.response_builders import build_wizard_view
from booking_wizard.core.security import AuthContext, get_auth_context
from booking_wizard.schemas.wizard import FormUpdate, WizardStart, WizardView
from booking_wizard.services.backend import BackendClient, get_backend
from booking_wizard.services.sessions import WizardRegistry, WizardSession, get_registry
from booking_wizard.services.wizard import BookingWizard

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/wizards", tags=["wizards"])


def _get_session(wizard_id: str, registry: WizardRegistry) -> WizardSession:
    session = registry.get(wizard_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Wizard {wizard_id} not found")
    return session


def _conflict(e: InvalidTransition) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.post("/", response_model=WizardView, status_code=status.HTTP_201_CREATED)
async def start_wizard(
    payload: WizardStart,
    backend: BackendClient = Depends(get_backend),
    auth: AuthContext = Depends(get_auth_context),
    registry: WizardRegistry = Depends(get_registry),
):
    try:
        wizard = await BookingWizard.start(payload.vehicle_id, backend, auth=auth)
    except PreconditionError as e:
        code = 404 if isinstance(e, VehicleNotFound) else 409
        raise HTTPException(status_code=code, detail={"message": e.message, "redirect_to": e.redirect_to})

    session = registry.add(wizard)
    logger.info(f"Wizard {session.id} started for vehicle {payload.vehicle_id}")
    return build_wizard_view(session)


@router.get("/{wizard_id}", response_model=WizardView)
async def get_wizard(
    wizard_id: str,
    wait_for_distance: bool = Query(False),
    registry: WizardRegistry = Depends(get_registry),
):
    session = _get_session(wizard_id, registry)
    if wait_for_distance:
        await session.wizard.wait_for_distance()
    return build_wizard_view(session)


@router.patch("/{wizard_id}/form", response_model=WizardView)
async def update_form(
    wizard_id: str,
    update: FormUpdate,
    registry: WizardRegistry = Depends(get_registry),
):
    session = _get_session(wizard_id, registry)
    # An explicit null coordinate is a place-selection event that clears the point.
    changes = update.changes()
    try:
        session.wizard.update_fields(**changes)
    except InvalidTransition as e:
        raise _conflict(e)
    return build_wizard_view(session)


@router.post("/{wizard_id}/next", response_model=WizardView)
async def next_step(
    wizard_id: str,
    auth: AuthContext = Depends(get_auth_context),
    registry: WizardRegistry = Depends(get_registry),
):
    session = _get_session(wizard_id, registry)
    wizard = session.wizard
    if not wizard.is_submitting:
        wizard.auth = auth
    try:
        await wizard.advance()
    except InvalidTransition as e:
        raise _conflict(e)
    return build_wizard_view(session)


@router.post("/{wizard_id}/back", response_model=WizardView)
async def previous_step(
    wizard_id: str,
    registry: WizardRegistry = Depends(get_registry),
):
    session = _get_session(wizard_id, registry)
    try:
        session.wizard.back()
    except InvalidTransition as e:
        raise _conflict(e)
    return build_wizard_view(session)


@router.post("/{wizard_id}/submit", response_model=WizardView)
async def submit_booking(
    wizard_id: str,
    auth: AuthContext = Depends(get_auth_context),
    registry: WizardRegistry = Depends(get_registry),
):
    session = _get_session(wizard_id, registry)
    wizard = session.wizard
    if not wizard.is_submitting:
        wizard.auth = auth
    try:
        await wizard.submit()
    except InvalidTransition as e:
        raise _conflict(e)
    return build_wizard_view(session)


@router.delete("/{wizard_id}")
async def abandon_wizard(
    wizard_id: str,
    registry: WizardRegistry = Depends(get_registry),
):
    if not registry.discard(wizard_id):
        raise HTTPException(status_code=404, detail=f"Wizard {wizard_id} not found")
    return {"deleted": True}
