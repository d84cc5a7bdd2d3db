from typing import Any, Dict, Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ....policies.onboarding import OnboardingMachine, OnboardingValidationError
from ....services.profile import get_profile_store

router = APIRouter(prefix="/onboarding", tags=["onboarding"])


class AdvanceRequest(BaseModel):
    payload: Optional[Any] = None


class OnboardingResponse(BaseModel):
    step: str
    progress: int
    completed: bool
    state: Dict[str, Any]


def _view(machine: OnboardingMachine) -> Dict[str, Any]:
    record = machine.to_record()
    return {
        "step": record["step"],
        "progress": machine.progress,
        "completed": machine.completed,
        "state": record["state"],
    }


def _rejected(machine: OnboardingMachine, err: OnboardingValidationError) -> JSONResponse:
    # The machine did not move, so the view is the pre-request state
    return JSONResponse(status_code=422, content={"error": err.message, **_view(machine)})


@router.get("/{user_id}", response_model=OnboardingResponse)
async def get_onboarding(user_id: str):
    return _view(get_profile_store().load_onboarding(user_id))


@router.post("/{user_id}/advance", response_model=OnboardingResponse)
async def advance(user_id: str, body: AdvanceRequest):
    store = get_profile_store()
    machine = store.load_onboarding(user_id)
    try:
        machine.advance(body.payload)
    except OnboardingValidationError as e:
        return _rejected(machine, e)
    store.save_onboarding(user_id, machine)
    return _view(machine)


@router.post("/{user_id}/skip", response_model=OnboardingResponse)
async def skip(user_id: str):
    store = get_profile_store()
    machine = store.load_onboarding(user_id)
    try:
        machine.skip()
    except OnboardingValidationError as e:
        return _rejected(machine, e)
    store.save_onboarding(user_id, machine)
    return _view(machine)


@router.post("/{user_id}/back", response_model=OnboardingResponse)
async def back(user_id: str):
    store = get_profile_store()
    machine = store.load_onboarding(user_id)
    try:
        machine.back()
    except OnboardingValidationError as e:
        return _rejected(machine, e)
    store.save_onboarding(user_id, machine)
    return _view(machine)
