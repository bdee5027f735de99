"""Per-user meal, summary and progress endpoints with token auth."""

from __future__ import annotations

from datetime import date  # noqa: TC003
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from starlette.background import BackgroundTask

from meal_scan.api.models import (
    AmountUpdateRequest,
    AnalyzeAudioRequest,
    AnalyzeImagesRequest,
    DailySummaryResponse,
    EvaluationRequest,
    IngredientPayload,
    IngredientResponse,
    IngredientSearchRequest,
    IngredientSearchResponse,
    MealCreateRequest,
    MealResponse,
    MealUpdateRequest,
    ProgressResponse,
    WeekSummaryResponse,
)
from meal_scan.domain.analysis import Rejected
from meal_scan.domain.extraction import ExtractionFailure
from meal_scan.domain.meals import Meal, new_id

if TYPE_CHECKING:
    from meal_scan.containers import AppContainer

router = APIRouter(prefix="/users/{user_id}", tags=["users"])


def _get_api_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.api_token


async def require_api_token(
    x_api_token: str | None = Header(default=None),
    api_token: str = Depends(_get_api_token),
) -> None:
    """Ensure requests include a valid API token."""
    if not x_api_token or x_api_token != api_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.post(
    "/meals/analyze",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_api_token)],
    response_model=MealResponse,
)
async def analyze_meal(
    user_id: str, payload: AnalyzeImagesRequest, request: Request
) -> MealResponse | JSONResponse:
    """Analyze meal photos and save the recognized meal."""
    container: AppContainer = request.app.state.container
    try:
        outcome = await container.meal_service.scan_meal(
            user_id, list(payload.images), payload.tier, payload.prompt
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    if isinstance(outcome, Rejected):
        return _rejected_response(
            outcome,
            BackgroundTask(
                container.meal_service.keep_rejected_image, user_id, outcome
            ),
        )
    return MealResponse.from_meal(_require_meal(outcome))


@router.post(
    "/meals/analyze-audio",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_api_token)],
    response_model=MealResponse,
)
async def analyze_meal_audio(
    user_id: str, payload: AnalyzeAudioRequest, request: Request
) -> MealResponse | JSONResponse:
    """Analyze a spoken meal description and save the meal."""
    container: AppContainer = request.app.state.container
    if not payload.audio:
        raise HTTPException(status_code=422, detail="Audio is empty")
    outcome = await container.meal_service.describe_meal(
        user_id, payload.audio, payload.mime_type
    )
    if isinstance(outcome, Rejected):
        return _rejected_response(outcome)
    return MealResponse.from_meal(_require_meal(outcome))


@router.post(
    "/ingredients/search",
    dependencies=[Depends(require_api_token)],
    response_model=IngredientSearchResponse,
)
async def search_ingredient(
    user_id: str, payload: IngredientSearchRequest, request: Request
) -> IngredientSearchResponse | JSONResponse:
    """Look up an ingredient without saving anything."""
    container: AppContainer = request.app.state.container
    try:
        outcome = await container.analysis_service.search_ingredient(
            payload.name, payload.quantity
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    if isinstance(outcome, Rejected):
        return _rejected_response(outcome)
    if isinstance(outcome, ExtractionFailure):
        raise _extraction_error(outcome)
    return IngredientSearchResponse(
        dish_name=outcome.dish_name,
        ingredients=[
            IngredientResponse.from_ingredient(item) for item in outcome.ingredients
        ],
    )


@router.post(
    "/meals",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_api_token)],
)
async def create_meal(
    user_id: str, payload: MealCreateRequest, request: Request
) -> MealResponse:
    """Save a meal built by the client."""
    container: AppContainer = request.app.state.container
    meal = container.meal_service.save_meal(user_id, payload.to_meal(new_id()))
    return MealResponse.from_meal(meal)


@router.get("/meals", dependencies=[Depends(require_api_token)])
async def list_meals(
    user_id: str, request: Request, day: date | None = None
) -> list[MealResponse]:
    """Return the meals of one day, today by default."""
    container: AppContainer = request.app.state.container
    meals = container.meal_service.list_meals_for_day(user_id, day)
    return [MealResponse.from_meal(meal) for meal in meals]


@router.get("/meals/export.csv", dependencies=[Depends(require_api_token)])
async def export_meals(user_id: str, request: Request) -> PlainTextResponse:
    """Return all meals as CSV."""
    container: AppContainer = request.app.state.container
    return PlainTextResponse(
        container.meal_service.export_csv(user_id), media_type="text/csv"
    )


@router.get("/meals/{meal_id}", dependencies=[Depends(require_api_token)])
async def get_meal(user_id: str, meal_id: str, request: Request) -> MealResponse:
    container: AppContainer = request.app.state.container
    try:
        meal = container.meal_service.get_meal(user_id, meal_id)
    except KeyError as exc:
        raise _not_found(exc) from exc
    return MealResponse.from_meal(meal)


@router.patch("/meals/{meal_id}", dependencies=[Depends(require_api_token)])
async def update_meal(
    user_id: str, meal_id: str, payload: MealUpdateRequest, request: Request
) -> MealResponse:
    """Rename a meal or change its notes."""
    container: AppContainer = request.app.state.container
    if payload.name is None and payload.notes is None:
        raise HTTPException(status_code=422, detail="Provide name or notes")
    try:
        meal = container.meal_service.update_meal_details(
            user_id, meal_id, name=payload.name, notes=payload.notes
        )
    except KeyError as exc:
        raise _not_found(exc) from exc
    return MealResponse.from_meal(meal)


@router.delete(
    "/meals/{meal_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_api_token)],
)
async def delete_meal(user_id: str, meal_id: str, request: Request) -> Response:
    container: AppContainer = request.app.state.container
    try:
        container.meal_service.delete_meal(user_id, meal_id)
    except KeyError as exc:
        raise _not_found(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/meals/{meal_id}/ingredients",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_api_token)],
)
async def add_ingredient(
    user_id: str, meal_id: str, payload: IngredientPayload, request: Request
) -> MealResponse:
    """Append an ingredient, e.g. one found by search."""
    container: AppContainer = request.app.state.container
    try:
        meal = container.meal_service.add_ingredient(
            user_id, meal_id, payload.to_ingredient()
        )
    except KeyError as exc:
        raise _not_found(exc) from exc
    return MealResponse.from_meal(meal)


@router.patch(
    "/meals/{meal_id}/ingredients/{ingredient_id}",
    dependencies=[Depends(require_api_token)],
)
async def update_ingredient(
    user_id: str,
    meal_id: str,
    ingredient_id: str,
    payload: AmountUpdateRequest,
    request: Request,
) -> MealResponse:
    """Change an ingredient amount or reset it to the analyzed amount."""
    container: AppContainer = request.app.state.container
    if not payload.reset and payload.amount is None:
        raise HTTPException(status_code=422, detail="Provide amount or reset")
    try:
        if payload.reset:
            meal = container.meal_service.reset_ingredient_amount(
                user_id, meal_id, ingredient_id
            )
        else:
            meal = container.meal_service.update_ingredient_amount(
                user_id, meal_id, ingredient_id, payload.amount
            )
    except KeyError as exc:
        raise _not_found(exc) from exc
    return MealResponse.from_meal(meal)


@router.delete(
    "/meals/{meal_id}/ingredients/{ingredient_id}",
    dependencies=[Depends(require_api_token)],
)
async def remove_ingredient(
    user_id: str, meal_id: str, ingredient_id: str, request: Request
) -> MealResponse:
    container: AppContainer = request.app.state.container
    try:
        meal = container.meal_service.remove_ingredient(
            user_id, meal_id, ingredient_id
        )
    except KeyError as exc:
        raise _not_found(exc) from exc
    return MealResponse.from_meal(meal)


@router.get("/summary/day", dependencies=[Depends(require_api_token)])
async def day_summary(
    user_id: str, request: Request, day: date | None = None
) -> DailySummaryResponse:
    """Return one day's totals, today by default."""
    container: AppContainer = request.app.state.container
    summary = container.stats_service.get_day(user_id, day)
    return DailySummaryResponse.from_summary(summary)


@router.get("/summary/week", dependencies=[Depends(require_api_token)])
async def week_summary(
    user_id: str, request: Request, start: date | None = None
) -> WeekSummaryResponse:
    """Return seven days of totals, the current week by default."""
    container: AppContainer = request.app.state.container
    period = container.stats_service.get_week(user_id, start)
    return WeekSummaryResponse.from_period(period)


@router.get("/progress", dependencies=[Depends(require_api_token)])
async def progress(user_id: str, request: Request) -> ProgressResponse:
    """Return the current progress cycle."""
    container: AppContainer = request.app.state.container
    snapshot = container.progress_service.compute_snapshot(user_id)
    return ProgressResponse.from_snapshot(snapshot)


@router.post("/progress/evaluation", dependencies=[Depends(require_api_token)])
async def run_evaluation(
    user_id: str, payload: EvaluationRequest, request: Request
) -> dict[str, Any]:
    """Evaluate the current cycle once it is eligible."""
    container: AppContainer = request.app.state.container
    snapshot = container.progress_service.compute_snapshot(user_id)
    if not snapshot.is_eligible_for_evaluation:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Cycle is not eligible for evaluation",
        )
    evaluation = await container.progress_service.run_evaluation(
        user_id, payload.to_profile()
    )
    if evaluation is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return evaluation


def _require_meal(outcome: Meal | ExtractionFailure) -> Meal:
    if isinstance(outcome, ExtractionFailure):
        raise _extraction_error(outcome)
    return outcome


def _extraction_error(failure: ExtractionFailure) -> HTTPException:
    return HTTPException(
        status_code=422,
        detail={"error": failure.kind.value, "message": failure.message},
    )


def _rejected_response(
    rejected: Rejected, background: BackgroundTask | None = None
) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "detail": {
                "error": "rejected",
                "classification": rejected.classification.value,
            }
        },
        background=background,
    )


def _not_found(exc: KeyError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=str(exc.args[0]) if exc.args else "Not found",
    )
