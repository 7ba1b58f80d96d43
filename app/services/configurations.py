"""
Configuration provider — the single active routing/template configuration.

Activation archives the previous active row and activates the new one inside
one transaction; the partial unique index on ``status = 'active'`` rejects any
interleaving that would leave two active rows. Reads are cached in-process for
CONFIG_CACHE_SECONDS and the cache is dropped on every swap.
"""
import copy
import logging
import time
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from app.config import CONFIG_CACHE_SECONDS, DEFAULT_CONFIGURATION
from app.database import get_session
from app.lifecycle.base import Classification, ConfigSnapshot, utcnow
from app.lifecycle.errors import ConcurrencyConflict, InvalidRequest, InvalidTransition, NotFound
from app.models.configuration import Configuration

logger = logging.getLogger('services.configurations')

# Fields a caller may override when creating a configuration
CONFIG_FIELDS = (
    'thresholds', 'email_templates', 'sdr', 'support_team', 'account_team',
    'email_settings', 'response_to_lead', 'rollout_percentage', 'prompts',
)

_cache = {'snapshot': None, 'loaded_at': 0.0}


def invalidate_cache():
    _cache['snapshot'] = None
    _cache['loaded_at'] = 0.0


def _to_snapshot(row: Configuration) -> ConfigSnapshot:
    return ConfigSnapshot(
        id=row.id,
        name=row.name,
        status=row.status,
        thresholds=dict(row.thresholds or {}),
        email_templates=row.email_templates or {},
        sdr=row.sdr or {},
        support_team=row.support_team or {},
        account_team=row.account_team or {},
        email_settings=row.email_settings or {},
        response_to_lead=row.response_to_lead or {},
        rollout_percentage=float(row.rollout_percentage if row.rollout_percentage is not None else 1.0),
        prompts=row.prompts or {},
    )


def _merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Recursive dict merge; overrides win."""
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def validate_configuration(values: Dict[str, Any]):
    """Raise InvalidRequest unless every classification has a threshold in [0, 1]."""
    thresholds = values.get('thresholds') or {}
    for classification in Classification:
        value = thresholds.get(classification.value)
        if value is None:
            raise InvalidRequest(f"Missing threshold for '{classification.value}'")
        try:
            value = float(value)
        except (TypeError, ValueError):
            raise InvalidRequest(f"Threshold for '{classification.value}' must be a number")
        if not 0.0 <= value <= 1.0:
            raise InvalidRequest(f"Threshold for '{classification.value}' must be within [0, 1]")

    rollout = values.get('rollout_percentage', 1.0)
    try:
        rollout = float(rollout)
    except (TypeError, ValueError):
        raise InvalidRequest("rollout_percentage must be a number")
    if not 0.0 <= rollout <= 1.0:
        raise InvalidRequest("rollout_percentage must be within [0, 1]")

    settings = values.get('email_settings') or {}
    if settings.get('test_mode') and not settings.get('test_email'):
        raise InvalidRequest("email_settings.test_email is required in test mode")


# ── Reads ─────────────────────────────────────────────────────────────────────

def get_active_configuration(use_cache: bool = True) -> ConfigSnapshot:
    """The active configuration. Raises NotFound when none is active."""
    now = time.monotonic()
    if use_cache and _cache['snapshot'] is not None \
            and now - _cache['loaded_at'] < CONFIG_CACHE_SECONDS:
        return _cache['snapshot']

    session = get_session()
    try:
        row = session.query(Configuration).filter(Configuration.status == 'active').first()
        if row is None:
            raise NotFound("No active configuration")
        snapshot = _to_snapshot(row)
    finally:
        session.close()

    _cache['snapshot'] = snapshot
    _cache['loaded_at'] = now
    return snapshot


def get_configuration(config_id: str) -> ConfigSnapshot:
    session = get_session()
    try:
        row = session.get(Configuration, config_id)
        if row is None:
            raise NotFound(f"Configuration {config_id} not found")
        return _to_snapshot(row)
    finally:
        session.close()


def list_configurations() -> List[Dict[str, Any]]:
    session = get_session()
    try:
        rows = session.query(Configuration).order_by(Configuration.created_at.desc()).all()
        return [
            {
                'id': row.id,
                'name': row.name,
                'status': row.status,
                'thresholds': row.thresholds,
                'rollout_percentage': row.rollout_percentage,
                'created_by': row.created_by,
                'created_at': row.created_at.isoformat() if row.created_at else None,
                'activated_at': row.activated_at.isoformat() if row.activated_at else None,
                'archived_at': row.archived_at.isoformat() if row.archived_at else None,
            }
            for row in rows
        ]
    finally:
        session.close()


# ── Writes ────────────────────────────────────────────────────────────────────

def _swap_active(session, config_id: str):
    """Archive whatever is active and activate ``config_id`` (a draft). No commit."""
    now = utcnow()
    session.execute(
        update(Configuration)
        .where(Configuration.status == 'active')
        .values(status='archived', archived_at=now)
        .execution_options(synchronize_session=False)
    )
    result = session.execute(
        update(Configuration)
        .where(Configuration.id == config_id, Configuration.status == 'draft')
        .values(status='active', activated_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InvalidTransition(f"Only draft configurations can be activated ({config_id})")


def create_configuration(name: str, overrides: Optional[Dict[str, Any]] = None,
                         created_by: Optional[str] = None, activate: bool = False) -> ConfigSnapshot:
    """
    Create a configuration from the defaults plus ``overrides``.

    With ``activate=True`` the insert and the swap share one transaction.
    """
    overrides = overrides or {}
    unknown = set(overrides) - set(CONFIG_FIELDS)
    if unknown:
        raise InvalidRequest(f"Unknown configuration fields: {sorted(unknown)}")

    base = {key: DEFAULT_CONFIGURATION[key] for key in CONFIG_FIELDS}
    values = _merge(base, overrides)
    validate_configuration(values)

    config_id = uuid.uuid4().hex
    session = get_session()
    try:
        session.add(Configuration(
            id=config_id,
            name=name or DEFAULT_CONFIGURATION['name'],
            status='draft',
            created_by=created_by,
            created_at=utcnow(),
            **{key: values[key] for key in CONFIG_FIELDS},
        ))
        session.flush()
        if activate:
            _swap_active(session, config_id)
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConcurrencyConflict("Another configuration was activated concurrently")
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    if activate:
        invalidate_cache()
        logger.info("Configuration %s (%s) created and activated", config_id, name,
                    extra={'configuration_id': config_id})
    else:
        logger.info("Configuration %s (%s) created as draft", config_id, name,
                    extra={'configuration_id': config_id})
    return get_configuration(config_id)


def activate_configuration(config_id: str) -> ConfigSnapshot:
    """Make a draft the single active configuration."""
    session = get_session()
    try:
        if session.get(Configuration, config_id) is None:
            raise NotFound(f"Configuration {config_id} not found")
        _swap_active(session, config_id)
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConcurrencyConflict("Another configuration was activated concurrently")
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    invalidate_cache()
    logger.info("Configuration %s activated", config_id, extra={'configuration_id': config_id})
    return get_configuration(config_id)


def archive_configuration(config_id: str) -> ConfigSnapshot:
    """Archive a draft. The active configuration is only replaced, never archived directly."""
    session = get_session()
    try:
        row = session.get(Configuration, config_id)
        if row is None:
            raise NotFound(f"Configuration {config_id} not found")
        if row.status == 'active':
            raise InvalidTransition("Cannot archive the active configuration; activate another first")
        if row.status == 'draft':
            row.status = 'archived'
            row.archived_at = utcnow()
            session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
    return get_configuration(config_id)


def ensure_default_configuration() -> ConfigSnapshot:
    """Return the active configuration, seeding the baseline when none exists."""
    try:
        return get_active_configuration(use_cache=False)
    except NotFound:
        logger.info("No active configuration — seeding baseline")
        try:
            return create_configuration(DEFAULT_CONFIGURATION['name'], activate=True,
                                        created_by='system')
        except ConcurrencyConflict:
            return get_active_configuration(use_cache=False)
