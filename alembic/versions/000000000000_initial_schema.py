"""initial_schema

Revision ID: 000000000000
Revises: 
Create Date: 2024-06-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '000000000000'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def _uuid_pk() -> sa.Column:
    return sa.Column('id', sa.String(length=36), nullable=False, comment='UUID primary key')


def _timestamps() -> list:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    ]


def upgrade() -> None:
    # Create sources table
    op.create_table(
        'sources',
        _uuid_pk(),
        sa.Column('source_key', sa.String(length=100), nullable=False, comment='Adapter source key (fl-manatee-pa)'),
        sa.Column('state_fips', sa.String(length=2), nullable=False, comment='2-digit state FIPS code'),
        sa.Column('county_fips', sa.String(length=3), nullable=True, comment='3-digit county FIPS code (null for statewide sources)'),
        sa.Column('name', sa.String(length=255), nullable=False, comment='Display name'),
        sa.Column('source_type', sa.String(length=50), nullable=False, comment='statewide, county_pa, tax_collector, recorder'),
        sa.Column('platform_family', sa.String(length=50), nullable=False, comment='arcgis, qpublic, custom_html, custom_json, playwright'),
        sa.Column('base_url', sa.Text(), nullable=False, comment='Source root URL'),
        sa.Column('is_active', sa.Boolean(), nullable=False, comment='Disabled sources are kept for provenance'),
        sa.Column('capabilities', JSON, nullable=False, comment='Declared capability flags'),
        sa.Column('rate_limit', JSON, nullable=False, comment='Requests per second and burst'),
        sa.Column('config_version', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('source_key'),
    )
    op.create_index('idx_sources_state_county', 'sources', ['state_fips', 'county_fips'], unique=False)

    # Create ingestion_runs table
    op.create_table(
        'ingestion_runs',
        _uuid_pk(),
        sa.Column('triggered_by', sa.String(length=50), nullable=False, comment='api, cli, workflow, manual'),
        sa.Column('purpose', sa.String(length=100), nullable=True, comment='lead_enrichment, backfill, ...'),
        sa.Column('started_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('finished_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('stats', JSON, nullable=False, comment='Upsert counts (parcel_created, sales_upserted, ...)'),
        sa.Column('error', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_ingestion_runs_status', 'ingestion_runs', ['status'], unique=False)
    op.create_index('idx_ingestion_runs_started_at', 'ingestion_runs', ['started_at'], unique=False)

    # Create ingestion_jobs table
    op.create_table(
        'ingestion_jobs',
        _uuid_pk(),
        sa.Column('run_id', sa.String(length=36), nullable=False),
        sa.Column('source_id', sa.String(length=36), nullable=True),
        sa.Column('input', JSON, nullable=False, comment='Request payload (address, parcel_id, force)'),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('attempts', sa.Integer(), nullable=False),
        sa.Column('last_error', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['run_id'], ['ingestion_runs.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['source_id'], ['sources.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_ingestion_jobs_run', 'ingestion_jobs', ['run_id'], unique=False)
    op.create_index('idx_ingestion_jobs_status', 'ingestion_jobs', ['status'], unique=False)

    # Create raw_fetches table
    op.create_table(
        'raw_fetches',
        _uuid_pk(),
        sa.Column('run_id', sa.String(length=36), nullable=True),
        sa.Column('job_id', sa.String(length=36), nullable=True),
        sa.Column('source_id', sa.String(length=36), nullable=False),
        sa.Column('request_url', sa.Text(), nullable=False),
        sa.Column('request_method', sa.String(length=10), nullable=False),
        sa.Column('response_status', sa.Integer(), nullable=True),
        sa.Column('response_body', sa.Text(), nullable=True, comment='HTML or JSON body'),
        sa.Column('content_type', sa.String(length=100), nullable=True),
        sa.Column('fetched_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('body_sha256', sa.String(length=64), nullable=True, comment='Body hash for change detection'),
        sa.Column('meta', JSON, nullable=False),
        sa.ForeignKeyConstraint(['run_id'], ['ingestion_runs.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['job_id'], ['ingestion_jobs.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['source_id'], ['sources.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_raw_fetches_source_fetched', 'raw_fetches', ['source_id', 'fetched_at'], unique=False)
    op.create_index('idx_raw_fetches_job', 'raw_fetches', ['job_id'], unique=False)
    op.create_index('idx_raw_fetches_sha', 'raw_fetches', ['body_sha256'], unique=False)

    # Create parse_artifacts table
    op.create_table(
        'parse_artifacts',
        _uuid_pk(),
        sa.Column('job_id', sa.String(length=36), nullable=True),
        sa.Column('source_id', sa.String(length=36), nullable=False),
        sa.Column('fetch_id', sa.String(length=36), nullable=True),
        sa.Column('parser_version', sa.String(length=50), nullable=False),
        sa.Column('dom_signature', sa.String(length=64), nullable=True, comment='Hash of key page markers for layout change detection'),
        sa.Column('extracted', JSON, nullable=False),
        sa.Column('warnings', JSON, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['job_id'], ['ingestion_jobs.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['source_id'], ['sources.id']),
        sa.ForeignKeyConstraint(['fetch_id'], ['raw_fetches.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_parse_artifacts_source', 'parse_artifacts', ['source_id', 'created_at'], unique=False)
    op.create_index('idx_parse_artifacts_fetch', 'parse_artifacts', ['fetch_id'], unique=False)

    # Create parcels table
    op.create_table(
        'parcels',
        _uuid_pk(),
        sa.Column('state_fips', sa.String(length=2), nullable=False),
        sa.Column('county_fips', sa.String(length=3), nullable=False),
        sa.Column('parcel_id_raw', sa.String(length=50), nullable=True, comment='Parcel id as printed'),
        sa.Column('parcel_id_norm', sa.String(length=50), nullable=False, comment='Normalized parcel id'),
        sa.Column('alternate_ids', JSON, nullable=False),
        sa.Column('situs_address_raw', sa.Text(), nullable=True),
        sa.Column('situs_address_norm', JSON, nullable=True, comment='line1, city, state, zip, normalized_full'),
        sa.Column('lat', sa.Numeric(precision=10, scale=7), nullable=True, comment='Latitude'),
        sa.Column('lon', sa.Numeric(precision=10, scale=7), nullable=True, comment='Longitude'),
        sa.Column('owner_name', sa.Text(), nullable=True),
        sa.Column('mailing_address', JSON, nullable=True),
        sa.Column('land', JSON, nullable=False, comment='use code, legal description, acreage, zoning'),
        sa.Column('improvements', JSON, nullable=False, comment='beds, baths, living area, year built, ...'),
        sa.Column('last_seen_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False, comment='Last time an ingestion observed this parcel'),
        sa.Column('canonical_source_id', sa.String(length=36), nullable=True),
        sa.Column('canonical_fetch_id', sa.String(length=36), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['canonical_source_id'], ['sources.id']),
        sa.ForeignKeyConstraint(['canonical_fetch_id'], ['raw_fetches.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('state_fips', 'county_fips', 'parcel_id_norm', name='uq_parcels_natural_key'),
    )

    # Create parcel_assessments table
    op.create_table(
        'parcel_assessments',
        _uuid_pk(),
        sa.Column('parcel_id', sa.String(length=36), nullable=False),
        sa.Column('tax_year', sa.Integer(), nullable=False),
        sa.Column('just_value', sa.Numeric(precision=14, scale=2), nullable=True),
        sa.Column('assessed_value', sa.Numeric(precision=14, scale=2), nullable=True),
        sa.Column('taxable_value', sa.Numeric(precision=14, scale=2), nullable=True),
        sa.Column('land_value', sa.Numeric(precision=14, scale=2), nullable=True),
        sa.Column('improvement_value', sa.Numeric(precision=14, scale=2), nullable=True),
        sa.Column('exemptions', JSON, nullable=False),
        sa.Column('extra', JSON, nullable=False, comment='Ad valorem and non-ad valorem taxes'),
        sa.Column('source_id', sa.String(length=36), nullable=True),
        sa.Column('fetch_id', sa.String(length=36), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['parcel_id'], ['parcels.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['source_id'], ['sources.id']),
        sa.ForeignKeyConstraint(['fetch_id'], ['raw_fetches.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('parcel_id', 'tax_year', name='uq_parcel_assessments_year'),
    )
    op.create_index('idx_parcel_assessments_year', 'parcel_assessments', ['tax_year'], unique=False)

    # Create parcel_sales table
    op.create_table(
        'parcel_sales',
        _uuid_pk(),
        sa.Column('parcel_id', sa.String(length=36), nullable=False),
        sa.Column('sale_date', sa.Date(), nullable=True),
        sa.Column('sale_price', sa.Numeric(precision=14, scale=2), nullable=True),
        sa.Column('qualified', sa.Boolean(), nullable=True),
        sa.Column('instrument', sa.String(length=100), nullable=True),
        sa.Column('book_page', sa.String(length=50), nullable=True),
        sa.Column('deed_type', sa.String(length=50), nullable=True),
        sa.Column('grantor', sa.Text(), nullable=True),
        sa.Column('grantee', sa.Text(), nullable=True),
        sa.Column('sale_key_sha256', sa.String(length=64), nullable=False, comment='Dedup key'),
        sa.Column('extra', JSON, nullable=False),
        sa.Column('source_id', sa.String(length=36), nullable=True),
        sa.Column('fetch_id', sa.String(length=36), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['parcel_id'], ['parcels.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['source_id'], ['sources.id']),
        sa.ForeignKeyConstraint(['fetch_id'], ['raw_fetches.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('parcel_id', 'sale_key_sha256', name='uq_parcel_sales_key'),
    )
    op.create_index('idx_parcel_sales_parcel', 'parcel_sales', ['parcel_id'], unique=False)
    op.create_index('idx_parcel_sales_date', 'parcel_sales', ['sale_date'], unique=False)


def downgrade() -> None:
    op.drop_index('idx_parcel_sales_date', table_name='parcel_sales')
    op.drop_index('idx_parcel_sales_parcel', table_name='parcel_sales')
    op.drop_table('parcel_sales')
    op.drop_index('idx_parcel_assessments_year', table_name='parcel_assessments')
    op.drop_table('parcel_assessments')
    op.drop_table('parcels')
    op.drop_index('idx_parse_artifacts_fetch', table_name='parse_artifacts')
    op.drop_index('idx_parse_artifacts_source', table_name='parse_artifacts')
    op.drop_table('parse_artifacts')
    op.drop_index('idx_raw_fetches_sha', table_name='raw_fetches')
    op.drop_index('idx_raw_fetches_job', table_name='raw_fetches')
    op.drop_index('idx_raw_fetches_source_fetched', table_name='raw_fetches')
    op.drop_table('raw_fetches')
    op.drop_index('idx_ingestion_jobs_status', table_name='ingestion_jobs')
    op.drop_index('idx_ingestion_jobs_run', table_name='ingestion_jobs')
    op.drop_table('ingestion_jobs')
    op.drop_index('idx_ingestion_runs_started_at', table_name='ingestion_runs')
    op.drop_index('idx_ingestion_runs_status', table_name='ingestion_runs')
    op.drop_table('ingestion_runs')
    op.drop_index('idx_sources_state_county', table_name='sources')
    op.drop_table('sources')
