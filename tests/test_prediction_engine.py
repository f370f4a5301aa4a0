"""MTO floor engine: center, dispersion, adjustments, floor, cap, confidence."""
from datetime import date

import pytest

from mto.markets.summary import market_features_for_game
from mto.ingestion.models import RawGame
from mto.models import (
    CalculationInput,
    GameContext,
    InjuryReport,
    MarketFeatures,
    TeamStats,
    WeatherCondition,
)
from mto.pipeline.fusion import fuse_games
from mto.prediction.engine import MTOFloorEngine
from mto.prediction.parameters import DEFAULT_PARAMETERS
from mto.sports import Sport
from mto.utils.distributions import z_for_quantile

AS_OF = date(2025, 1, 15)


def _stats(name, scored, allowed, spread=4.0, games=20, **extra) -> TeamStats:
    form = (scored - spread, scored + spread, scored - spread, scored + spread)
    return TeamStats(
        team_id=name[:3],
        team_name=name,
        avg_points_scored=scored,
        avg_points_allowed=allowed,
        recent_form=form,
        games_played=games,
        **extra,
    )


def _inputs(sport=Sport.NBA, home=None, away=None, context=None, line=None, market=None) -> CalculationInput:
    return CalculationInput(
        game_id="g1",
        sport=sport,
        home_stats=home or _stats("Los Angeles Lakers", 112.0, 110.0),
        away_stats=away or _stats("Boston Celtics", 110.0, 112.0),
        context=context or GameContext(),
        sportsbook_line=line,
        market=market,
        as_of_date=AS_OF,
    )


@pytest.fixture
def engine():
    return MTOFloorEngine()


class TestCenterAndFloor:
    def test_center_is_sum_of_sides(self, engine):
        prediction = engine.predict(_inputs())
        assert prediction.expected_total == pytest.approx(222.0)
        assert prediction.diagnostics["mu_model"] == pytest.approx(222.0)

    def test_floor_formula_without_references(self, engine):
        prediction = engine.predict(_inputs())
        sigma = prediction.diagnostics["sigma"]
        z = z_for_quantile(0.05)
        assert prediction.mto_floor == pytest.approx(round(222.0 - z * sigma, 1))
        assert prediction.coverage_target == pytest.approx(0.95)
        assert not prediction.stays_away

    def test_floor_strictly_decreases_with_sigma(self, engine):
        narrow = engine.predict(_inputs(
            home=_stats("A", 112.0, 110.0, spread=6.0), away=_stats("B", 110.0, 112.0, spread=6.0),
        ))
        wide = engine.predict(_inputs(
            home=_stats("A", 112.0, 110.0, spread=8.0), away=_stats("B", 110.0, 112.0, spread=8.0),
        ))
        assert narrow.expected_total == wide.expected_total
        assert wide.diagnostics["sigma"] > narrow.diagnostics["sigma"]
        assert wide.mto_floor < narrow.mto_floor

    def test_sigma_clamped_to_sport_bounds(self, engine):
        sp = DEFAULT_PARAMETERS.for_sport(Sport.NBA)
        tight = engine.predict(_inputs(
            home=_stats("A", 112.0, 110.0, spread=1.0), away=_stats("B", 110.0, 112.0, spread=1.0),
        ))
        wild = engine.predict(_inputs(
            home=_stats("A", 112.0, 110.0, spread=40.0), away=_stats("B", 110.0, 112.0, spread=40.0),
        ))
        assert tight.diagnostics["sigma"] == pytest.approx(sp.sigma_min)
        assert wild.diagnostics["sigma"] == pytest.approx(sp.sigma_max)

    def test_pace_adjustment(self, engine):
        fast = engine.predict(_inputs(
            home=_stats("A", 112.0, 110.0, pace=109.45), away=_stats("B", 110.0, 112.0, pace=109.45),
        ))
        # 10% above league pace -> +1% of mu
        assert fast.expected_total == pytest.approx(224.2, abs=0.05)
        assert any(k.factor == "Pace" for k in fast.key_factors)

    def test_floor_never_negative(self, engine):
        prediction = engine.predict(_inputs(
            sport=Sport.SOCCER,
            home=_stats("A", 0.5, 0.5, spread=0.0),
            away=_stats("B", 0.5, 0.5, spread=0.0),
        ))
        assert prediction.mto_floor == 0.0


class TestCapAndStayAway:
    def test_line_cap(self, engine):
        prediction = engine.predict(_inputs(line=224.5))
        assert prediction.mto_floor == pytest.approx(0.8 * 224.5, abs=0.05)
        assert "market-cap" in prediction.notes
        assert prediction.diagnostics["floor_uncapped"] > prediction.mto_floor

    def test_stays_away_when_gap_is_thin(self, engine):
        prediction = engine.predict(_inputs(
            sport=Sport.NHL,
            home=_stats("A", 3.0, 3.0, spread=0.0),
            away=_stats("B", 3.0, 3.0, spread=0.0),
            line=2.0,
        ))
        assert prediction.mto_floor == pytest.approx(1.6)
        assert prediction.stays_away

    def test_market_mean_is_reference_without_line(self, engine):
        market = MarketFeatures(mean_total=6.0, median_total=6.0, std_total=0.1, quote_count=4, source="live")
        prediction = engine.predict(_inputs(
            sport=Sport.NHL,
            home=_stats("A", 3.0, 3.0, spread=0.5),
            away=_stats("B", 3.0, 3.0, spread=0.5),
            market=market,
        ))
        assert prediction.sportsbook_line is None
        assert prediction.stays_away == ((6.0 - prediction.mto_floor) <= 0.5)
        assert "market-blend" in prediction.notes


class TestContextualAdjustments:
    def test_weather_only_outdoors(self, engine):
        windy = WeatherCondition(temperature=60, wind_speed=20)
        outdoor = engine.predict(_inputs(
            sport=Sport.NFL,
            home=_stats("A", 23.0, 21.0), away=_stats("B", 21.0, 23.0),
            context=GameContext(weather=windy),
        ))
        indoor = engine.predict(_inputs(
            sport=Sport.NFL,
            home=_stats("A", 23.0, 21.0), away=_stats("B", 21.0, 23.0),
            context=GameContext(weather=WeatherCondition(temperature=60, wind_speed=20, indoor=True)),
        ))
        assert "weather" in outdoor.notes
        assert "weather" not in indoor.notes
        assert outdoor.expected_total == pytest.approx(indoor.expected_total - 3.0)

    def test_low_tempo_conference(self, engine):
        prediction = engine.predict(_inputs(
            sport=Sport.NCAA_FB,
            home=_stats("Iowa", 24.0, 18.0), away=_stats("Minnesota", 22.0, 20.0),
            context=GameContext(conference="Big Ten"),
        ))
        assert "conf-pace" in prediction.notes
        assert any(k.factor == "Low Tempo Conference" for k in prediction.key_factors)

    def test_injuries_count_high_impact_only(self, engine):
        injuries = (
            InjuryReport("Star One", "high", "out"),
            InjuryReport("Star Two", "high", "questionable"),
            InjuryReport("Bench", "low", "out"),
            InjuryReport("Doubtful Star", "high", "doubtful"),
        )
        base = engine.predict(_inputs(context=GameContext(injuries=())))
        hurt = engine.predict(_inputs(context=GameContext(injuries=injuries)))
        assert "injuries" in hurt.notes
        assert hurt.expected_total == pytest.approx(base.expected_total - 4.0)

    def test_early_season_shrinks_toward_league(self, engine):
        league = DEFAULT_PARAMETERS.for_sport(Sport.NBA).league.avg_total
        prediction = engine.predict(_inputs(
            home=_stats("A", 120.0, 118.0, games=3), away=_stats("B", 118.0, 120.0, games=3),
        ))
        assert "early-season-shrink" in prediction.notes
        assert prediction.expected_total == pytest.approx(0.7 * 238.0 + 0.3 * league, abs=0.05)

    def test_rivalry(self, engine):
        prediction = engine.predict(_inputs(context=GameContext(rivalry=True)))
        assert "defensive-rivalry" in prediction.notes
        assert prediction.expected_total == pytest.approx(219.0)


class TestConfidence:
    @pytest.mark.parametrize(
        "inputs",
        [
            _inputs(),
            _inputs(
                home=TeamStats(None, "A", 0.0, 0.0, games_played=0, has_history=False),
                away=TeamStats(None, "B", 0.0, 0.0, games_played=0, has_history=False),
            ),
            _inputs(market=MarketFeatures(mean_total=230.0, median_total=230.0, std_total=25.0,
                                          quote_count=1, source="live")),
            _inputs(
                home=_stats("A", 112.0, 110.0, games=82, pace=100.0, offensive_efficiency=115.0,
                            defensive_efficiency=110.0),
                away=_stats("B", 110.0, 112.0, games=82, pace=98.0, offensive_efficiency=112.0,
                            defensive_efficiency=111.0),
                context=GameContext(injuries=()),
                market=MarketFeatures(mean_total=222.0, median_total=222.0, std_total=0.0,
                                      quote_count=8, source="live"),
            ),
        ],
    )
    def test_confidence_bounds(self, engine, inputs):
        prediction = engine.predict(inputs)
        assert 0.35 <= prediction.confidence <= 0.95
        assert 0.0 <= prediction.data_completeness <= 1.0

    def test_no_history_falls_back_to_league(self, engine):
        prediction = engine.predict(_inputs(
            home=TeamStats(None, "A", 0.0, 0.0, games_played=0, has_history=False),
            away=TeamStats(None, "B", 0.0, 0.0, games_played=0, has_history=False),
        ))
        league = DEFAULT_PARAMETERS.for_sport(Sport.NBA).league.avg_total
        assert prediction.expected_total == pytest.approx(league)
        assert prediction.confidence == pytest.approx(0.35)


def test_end_to_end_celtics_at_lakers(engine):
    schedule = [RawGame(
        id="401", home_name="LA Lakers", away_name="Boston Celtics",
        start_time_utc="2025-01-16T03:30:00Z", home_id="13", away_id="2", source_tag="espn",
    )]
    odds = [RawGame(
        id="abc", home_name="Los Angeles Lakers", away_name="Boston Celtics",
        start_time_utc="2025-01-16T03:30:00Z", consensus_total=224.5, quote_count=3,
        total_dispersion=1.2, source_tag="the_odds",
    )]
    games = fuse_games(Sport.NBA, schedule, odds)
    assert len(games) == 1
    game = games[0]
    assert game.sportsbook_line == 224.5
    assert game.data_source == "merged"

    market = market_features_for_game([], game)
    prediction = engine.predict(CalculationInput(
        game_id=game.id,
        sport=game.sport,
        home_stats=_stats(game.home_team, 112.0, 110.0),
        away_stats=_stats(game.away_team, 110.0, 112.0),
        sportsbook_line=game.sportsbook_line,
        market=market,
        as_of_date=AS_OF,
    ))
    assert 222.0 * 0.8 <= prediction.expected_total <= 222.0 * 1.2
    assert prediction.mto_floor < prediction.expected_total
    margin = DEFAULT_PARAMETERS.for_sport(Sport.NBA).stay_away_margin
    assert prediction.stays_away == ((224.5 - prediction.mto_floor) <= margin)
    assert any(k.factor == "Market Blend" and k.weight > 0 for k in prediction.key_factors)
