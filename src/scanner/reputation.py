"""Deployer reputation score: Bayesian death rate + sample size + lifespan + cluster.

Pure and deterministic: no I/O, never raises. Out-of-range inputs are clamped.

Components (summed, then risk deductions subtracted, clamped to 0-100):
- Death rate: 0-40 pts. Posterior mean of the death probability with a weak
  Beta prior centred on 0.5, so one or two dead tokens don't read as 100%.
- Token count: 0-20 pts. Log-dampened penalty for many launches, scaled by
  the observed death rate (prolific and clean loses less than prolific and lethal).
- Lifespan: 0-20 pts. Half a point per day of average market pair age.
- Cluster: 0-20 pts. Two points lost per co-funded deployer.

Verdict: >=60 CLEAN, 30-59 SUSPICIOUS, <30 SERIAL_RUGGER only with at
least 3 verified dead tokens (otherwise SUSPICIOUS).
"""

import math
from dataclasses import dataclass

from src.scanner.models import RiskSignals, ScoreBreakdown, Verdict

DEATH_RATE_WEIGHT = 40.0
TOKEN_COUNT_WEIGHT = 20.0
LIFESPAN_WEIGHT = 20.0
CLUSTER_WEIGHT = 20.0

CLEAN_THRESHOLD = 60
SUSPICIOUS_THRESHOLD = 30
MIN_DEAD_FOR_SERIAL = 3

MINT_AUTHORITY_PENALTY = 10
FREEZE_AUTHORITY_PENALTY = 5
TOP_HOLDER_PENALTY = 5
TOP_HOLDER_THRESHOLD_PCT = 80.0
BUNDLE_PENALTY = 5
BURNER_PENALTY = 10


@dataclass(frozen=True)
class ScoringConfig:
    """Calibratable constants.

    prior_weight: pseudo-observations of the 0.5 prior. Kept small so that a
        2-token deployer scores within 5 points of a 100-token deployer with
        the same death rate, and 3 dead tokens can still reach SERIAL_RUGGER.
    token_count_saturation: launch count at which the full token-count
        penalty applies (log10(n) / log10(saturation), capped at 1).
    min_token_penalty_scale: share of the token-count penalty applied at a
        0% death rate; reaches 1.0 at a 50% death rate.
    """

    prior_death_rate: float = 0.5
    prior_weight: float = 0.5
    token_count_saturation: float = 3.0
    min_token_penalty_scale: float = 0.25
    lifespan_points_per_day: float = 0.5
    cluster_points_per_wallet: float = 2.0


DEFAULT_SCORING = ScoringConfig()


@dataclass(frozen=True)
class ReputationResult:
    score: int
    verdict: Verdict
    breakdown: ScoreBreakdown
    verified_dead_count: int


def round_half_up(value: float) -> int:
    # Shift-invariant for integer deductions (banker's rounding is not)
    return math.floor(value + 0.5)


def _finite(value: float, default: float = 0.0) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return default
    return value if math.isfinite(value) else default


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def determine_verdict(score: int, verified_dead_count: int) -> Verdict:
    """Verdict from score with the serial-rugger eligibility guard."""
    if score >= CLEAN_THRESHOLD:
        return Verdict.CLEAN
    if score >= SUSPICIOUS_THRESHOLD:
        return Verdict.SUSPICIOUS
    if verified_dead_count >= MIN_DEAD_FOR_SERIAL:
        return Verdict.SERIAL_RUGGER
    return Verdict.SUSPICIOUS


def posterior_death_rate(
    death_rate: float, verified_count: int, config: ScoringConfig = DEFAULT_SCORING
) -> float:
    deaths = death_rate * verified_count
    w = config.prior_weight
    return (deaths + w * config.prior_death_rate) / (verified_count + w)


def _token_count_component(
    token_count: int, death_rate: float, config: ScoringConfig
) -> float:
    if token_count <= 1:
        return TOKEN_COUNT_WEIGHT
    dampened = min(1.0, math.log10(token_count) / math.log10(config.token_count_saturation))
    scale = config.min_token_penalty_scale + (1 - config.min_token_penalty_scale) * min(
        1.0, death_rate / 0.5
    )
    return TOKEN_COUNT_WEIGHT * (1 - scale * dampened)


def _risk_deductions(signals: RiskSignals | None) -> tuple[int, list[str]]:
    if signals is None:
        return 0, []
    total = 0
    details: list[str] = []
    if signals.mint_authority_active:
        total += MINT_AUTHORITY_PENALTY
        details.append(f"Mint authority active (-{MINT_AUTHORITY_PENALTY})")
    if signals.freeze_authority_active:
        total += FREEZE_AUTHORITY_PENALTY
        details.append(f"Freeze authority active (-{FREEZE_AUTHORITY_PENALTY})")
    if signals.top_holder_pct is not None and signals.top_holder_pct > TOP_HOLDER_THRESHOLD_PCT:
        total += TOP_HOLDER_PENALTY
        details.append(
            f"Top holder owns {signals.top_holder_pct:.1f}% of supply (-{TOP_HOLDER_PENALTY})"
        )
    if signals.bundle_detected:
        total += BUNDLE_PENALTY
        details.append(f"Bundled launch detected (-{BUNDLE_PENALTY})")
    if signals.is_burner:
        total += BURNER_PENALTY
        details.append(f"Burner wallet: funded <60s before first deploy (-{BURNER_PENALTY})")
    return total, details


def calculate_reputation(
    *,
    death_rate: float,
    rug_rate: float,
    token_count: int,
    verified_count: int,
    avg_lifespan_days: float,
    cluster_size: int,
    risk_signals: RiskSignals | None = None,
    config: ScoringConfig = DEFAULT_SCORING,
) -> ReputationResult:
    """Score a deployer 0-100 (0 = worst, 100 = cleanest)."""
    death_rate = _clamp(_finite(death_rate), 0.0, 1.0)
    rug_rate = _clamp(_finite(rug_rate), 0.0, 1.0)
    verified_count = max(0, int(_finite(verified_count)))
    token_count = max(0, int(_finite(token_count)), verified_count)
    avg_lifespan_days = max(0.0, _finite(avg_lifespan_days))
    cluster_size = max(0, int(_finite(cluster_size)))

    posterior = posterior_death_rate(death_rate, verified_count, config)
    death_component = round((1 - posterior) * DEATH_RATE_WEIGHT, 2)
    token_component = round(_token_count_component(token_count, death_rate, config), 2)
    lifespan_component = round(
        min(LIFESPAN_WEIGHT, avg_lifespan_days * config.lifespan_points_per_day), 2
    )
    cluster_component = round(
        max(0.0, CLUSTER_WEIGHT - cluster_size * config.cluster_points_per_wallet), 2
    )

    deductions, deduction_details = _risk_deductions(risk_signals)
    total = death_component + token_component + lifespan_component + cluster_component
    score = int(_clamp(round_half_up(total - deductions), 0, 100))
    verified_dead = round_half_up(death_rate * verified_count)
    verdict = determine_verdict(score, verified_dead)

    details = [
        f"Death rate {death_rate:.0%} over {verified_count} verified tokens "
        f"(adjusted {posterior:.0%}): {death_component:.1f}/40",
        f"{token_count} tokens created: {token_component:.1f}/20",
        f"Average lifespan {avg_lifespan_days:.1f} days: {lifespan_component:.1f}/20",
        f"Funding cluster of {cluster_size} other deployers: {cluster_component:.1f}/20",
    ]
    if rug_rate > death_rate:
        details.append(f"Rug rate incl. unverified tokens: {rug_rate:.0%}")
    details.extend(deduction_details)
    if risk_signals is not None:
        if risk_signals.deployer_holdings_pct is not None:
            details.append(f"Deployer holds {risk_signals.deployer_holdings_pct:.2f}% of supply")
        if risk_signals.deploy_velocity is not None:
            details.append(f"Deploy velocity {risk_signals.deploy_velocity:.2f} tokens/day")
    if score < SUSPICIOUS_THRESHOLD and verdict != Verdict.SERIAL_RUGGER:
        details.append(
            f"Fewer than {MIN_DEAD_FOR_SERIAL} verified dead tokens: not labelled serial rugger"
        )

    breakdown = ScoreBreakdown(
        death_rate_component=death_component,
        token_count_component=token_component,
        lifespan_component=lifespan_component,
        cluster_component=cluster_component,
        risk_deductions=float(deductions),
        details=details,
    )
    return ReputationResult(
        score=score,
        verdict=verdict,
        breakdown=breakdown,
        verified_dead_count=verified_dead,
    )
