"""Initial salon schema: stores, employees, tickets, ready queue, attendance

Revision ID: 20251025_initial
Revises:
Create Date: 2025-10-25

This migration adds:
1. Stores (civil timezone + weekly opening/closing hours) and services
2. Employees (concurrent job roles, permission tier, pay type) and store assignment
3. Sale tickets with approval routing fields, ticket items, activity log
4. Technician ready queue (one row per employee/store)
5. Attendance sessions (several per day allowed)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20251025_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. STORES / SERVICES
    # ==========================================================================
    op.create_table('stores',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=True),
        sa.Column('timezone', sa.String(length=64), nullable=False, server_default='America/New_York'),
        sa.Column('opening_hours', sa.JSON(), nullable=True),
        sa.Column('closing_hours', sa.JSON(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code', name='uq_stores_code'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('stores', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_stores_code'), ['code'], unique=False)
        batch_op.create_index(batch_op.f('ix_stores_is_active'), ['is_active'], unique=False)

    op.create_table('services',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('duration_min', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('services', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_services_store_id'), ['store_id'], unique=False)

    # ==========================================================================
    # 2. EMPLOYEES
    # ==========================================================================
    op.create_table('employees',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('legal_name', sa.String(length=255), nullable=False),
        sa.Column('display_name', sa.String(length=120), nullable=False),
        sa.Column('roles', sa.JSON(), nullable=False),
        sa.Column('permission_tier', sa.String(length=32), nullable=False, server_default='Technician'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        sa.Column('pay_type', sa.String(length=16), nullable=False, server_default='hourly'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('employees', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_employees_display_name'), ['display_name'], unique=False)
        batch_op.create_index(batch_op.f('ix_employees_status'), ['status'], unique=False)

    op.create_table('employee_stores',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('employee_id', 'store_id', name='uq_employee_stores'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('employee_stores', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_employee_stores_employee_id'), ['employee_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_employee_stores_store_id'), ['store_id'], unique=False)

    # ==========================================================================
    # 3. TICKETS
    # ==========================================================================
    op.create_table('sale_tickets',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('ticket_no', sa.String(length=32), nullable=True),
        sa.Column('opened_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('opened_by_id', sa.Integer(), nullable=True),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('closed_by_id', sa.Integer(), nullable=True),
        sa.Column('closed_by_roles', sa.JSON(), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_by_id', sa.Integer(), nullable=True),
        sa.Column('approval_status', sa.String(length=24), nullable=False, server_default='none'),
        sa.Column('approval_deadline', sa.DateTime(timezone=True), nullable=True),
        sa.Column('approval_required_level', sa.String(length=16), nullable=True),
        sa.Column('approval_reason', sa.String(length=255), nullable=True),
        sa.Column('requires_higher_approval', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('performed_and_closed_by_same_person', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('approved_by_id', sa.Integer(), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejected_by_id', sa.Integer(), nullable=True),
        sa.Column('rejected_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('requires_admin_review', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('reviewed_by_id', sa.Integer(), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ),
        sa.ForeignKeyConstraint(['opened_by_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['closed_by_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['completed_by_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['approved_by_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['rejected_by_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['reviewed_by_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('sale_tickets', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_sale_tickets_store_id'), ['store_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_sale_tickets_approval_status'), ['approval_status'], unique=False)
        batch_op.create_index('ix_sale_tickets_store_status', ['store_id', 'approval_status'], unique=False)
        batch_op.create_index('ix_sale_tickets_approval_deadline', ['approval_status', 'approval_deadline'], unique=False)

    op.create_table('ticket_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('ticket_id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('service_id', sa.Integer(), nullable=True),
        sa.Column('qty', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_by_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['ticket_id'], ['sale_tickets.id'], ),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['service_id'], ['services.id'], ),
        sa.ForeignKeyConstraint(['completed_by_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('ticket_items', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_ticket_items_ticket_id'), ['ticket_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_ticket_items_employee_id'), ['employee_id'], unique=False)
        batch_op.create_index('ix_ticket_items_employee_completed', ['employee_id', 'completed_at'], unique=False)

    op.create_table('ticket_activity_log',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('ticket_id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=True),
        sa.Column('actor', sa.String(length=120), nullable=False),
        sa.Column('action', sa.String(length=24), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('changes', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['ticket_id'], ['sale_tickets.id'], ),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('ticket_activity_log', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_ticket_activity_log_ticket_id'), ['ticket_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_ticket_activity_log_action'), ['action'], unique=False)
        batch_op.create_index('ix_ticket_activity_ticket_created', ['ticket_id', 'created_at'], unique=False)

    # ==========================================================================
    # 4. TECHNICIAN READY QUEUE
    # ==========================================================================
    op.create_table('technician_ready_queue',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='ready'),
        sa.Column('ready_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('employee_id', 'store_id', name='uq_ready_queue_employee_store'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('technician_ready_queue', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_technician_ready_queue_employee_id'), ['employee_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_technician_ready_queue_store_id'), ['store_id'], unique=False)
        batch_op.create_index('ix_ready_queue_store_ready_at', ['store_id', 'ready_at'], unique=False)

    # ==========================================================================
    # 5. ATTENDANCE
    # ==========================================================================
    op.create_table('attendance_records',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('work_date', sa.Date(), nullable=False),
        sa.Column('check_in_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('check_out_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_activity_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.String(length=24), nullable=False, server_default='checked_in'),
        sa.Column('total_hours', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('pay_type', sa.String(length=16), nullable=False, server_default='hourly'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('attendance_records', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_attendance_records_employee_id'), ['employee_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_attendance_records_store_id'), ['store_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_attendance_records_status'), ['status'], unique=False)
        batch_op.create_index('ix_attendance_employee_store_status', ['employee_id', 'store_id', 'status'], unique=False)
        batch_op.create_index('ix_attendance_store_date', ['store_id', 'work_date'], unique=False)


def downgrade():
    for table, indexes in (
        ('attendance_records', [
            'ix_attendance_store_date',
            'ix_attendance_employee_store_status',
            'ix_attendance_records_status',
            'ix_attendance_records_store_id',
            'ix_attendance_records_employee_id',
        ]),
        ('technician_ready_queue', [
            'ix_ready_queue_store_ready_at',
            'ix_technician_ready_queue_store_id',
            'ix_technician_ready_queue_employee_id',
        ]),
        ('ticket_activity_log', [
            'ix_ticket_activity_ticket_created',
            'ix_ticket_activity_log_action',
            'ix_ticket_activity_log_ticket_id',
        ]),
        ('ticket_items', [
            'ix_ticket_items_employee_completed',
            'ix_ticket_items_employee_id',
            'ix_ticket_items_ticket_id',
        ]),
        ('sale_tickets', [
            'ix_sale_tickets_approval_deadline',
            'ix_sale_tickets_store_status',
            'ix_sale_tickets_approval_status',
            'ix_sale_tickets_store_id',
        ]),
        ('employee_stores', ['ix_employee_stores_store_id', 'ix_employee_stores_employee_id']),
        ('employees', ['ix_employees_status', 'ix_employees_display_name']),
        ('services', ['ix_services_store_id']),
        ('stores', ['ix_stores_is_active', 'ix_stores_code']),
    ):
        with op.batch_alter_table(table, schema=None) as batch_op:
            for index in indexes:
                batch_op.drop_index(index)
        op.drop_table(table)
