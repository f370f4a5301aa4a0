"""Games and floor prediction routes.

Routes:
    GET /games/{sport}                           - fused games for a date
    GET /games/{sport}/predictions               - predictions for the open games
    GET /games/{sport}/{game_id}/prediction      - prediction for one game
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request

from mto.serving.dependencies import get_service, parse_sport, resolve_date_params
from mto.serving.models.responses import GamesResponse, PredictionResponse, PredictionsResponse
from mto.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/games", tags=["Games"])


@router.get("/{sport}", response_model=GamesResponse)
async def list_games(
    request: Request,
    sport: str,
    date: Optional[str] = Query(None, description="Local date YYYY-MM-DD (default: today)"),
    tz: Optional[str] = Query(None, description="IANA time zone"),
):
    sport_enum = parse_sport(sport)
    iso_date, tz_name = resolve_date_params(date, tz)
    games = await get_service(request).list_games(sport_enum, iso_date, tz_name)
    return GamesResponse(
        sport=sport_enum.value,
        date=iso_date,
        timezone=tz_name,
        count=len(games),
        games=[g.to_dict() for g in games],
    )


@router.get("/{sport}/predictions", response_model=PredictionsResponse)
async def slate_predictions(
    request: Request,
    sport: str,
    date: Optional[str] = Query(None, description="Local date YYYY-MM-DD (default: today)"),
    tz: Optional[str] = Query(None, description="IANA time zone"),
):
    sport_enum = parse_sport(sport)
    iso_date, tz_name = resolve_date_params(date, tz)
    predictions = await get_service(request).predict_slate(sport_enum, iso_date, tz_name)
    logger.info(f"Served {len(predictions)} {sport_enum.value} predictions for {iso_date}")
    return PredictionsResponse(
        sport=sport_enum.value,
        date=iso_date,
        timezone=tz_name,
        count=len(predictions),
        stay_away_count=sum(1 for p in predictions if p.stays_away),
        predictions=[p.to_dict() for p in predictions],
    )


@router.get("/{sport}/{game_id}/prediction", response_model=PredictionResponse)
async def game_prediction(
    request: Request,
    sport: str,
    game_id: str,
    date: Optional[str] = Query(None, description="Local date YYYY-MM-DD (default: today)"),
    tz: Optional[str] = Query(None, description="IANA time zone"),
):
    sport_enum = parse_sport(sport)
    iso_date, tz_name = resolve_date_params(date, tz)
    service = get_service(request)
    games = await service.list_games(sport_enum, iso_date, tz_name)
    game = next((g for g in games if g.id == game_id), None)
    if game is None:
        raise HTTPException(status_code=404, detail=f"Game {game_id} not found on {iso_date}")
    prediction = await service.predict_game(game, tz_name=tz_name)
    return PredictionResponse(game=game.to_dict(), prediction=prediction.to_dict())
