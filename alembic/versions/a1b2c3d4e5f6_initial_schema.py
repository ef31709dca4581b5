"""initial practice session schema

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'a1b2c3d4e5f6'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]

def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('display_name', sa.String(255), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'quizzes',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('owner_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_quizzes_owner_id', 'quizzes', ['owner_id'])

    op.create_table(
        'questions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('quiz_id', sa.Integer(), sa.ForeignKey('quizzes.id', ondelete='CASCADE'), nullable=False),
        sa.Column('question_text', sa.Text(), nullable=False),
        sa.Column('category', sa.String(255), nullable=True),
        sa.Column('is_multiple_choice', sa.Boolean(), server_default=sa.false(), nullable=False),
    )
    op.create_index('ix_questions_quiz_id', 'questions', ['quiz_id'])

    op.create_table(
        'options',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('question_id', sa.Integer(), sa.ForeignKey('questions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('option_text', sa.Text(), nullable=False),
        sa.Column('is_answer', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('explanation', sa.Text(), nullable=True),
    )
    op.create_index('ix_options_question_id', 'options', ['question_id'])

    op.create_table(
        'quiz_sessions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('session_token', sa.String(64), nullable=False),
        sa.Column('quiz_id', sa.Integer(), sa.ForeignKey('quizzes.id', ondelete='CASCADE'), nullable=False),
        sa.Column('owner_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('shuffle_seed', sa.BigInteger(), server_default='0', nullable=False),
        sa.Column('question_count', sa.Integer(), nullable=False),
        sa.Column('selection_mode', sa.String(32), server_default='unanswered', nullable=False),
        *_timestamps(),
        sa.UniqueConstraint('name', 'quiz_id', name='uq_quiz_sessions_name_quiz'),
    )
    op.create_index('ix_quiz_sessions_session_token', 'quiz_sessions', ['session_token'], unique=True)
    op.create_index('ix_quiz_sessions_quiz_id', 'quiz_sessions', ['quiz_id'])
    op.create_index('ix_quiz_sessions_owner_id', 'quiz_sessions', ['owner_id'])

    op.create_table(
        'session_questions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('session_id', sa.Integer(), sa.ForeignKey('quiz_sessions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('question_id', sa.Integer(), sa.ForeignKey('questions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('question_number', sa.Integer(), nullable=False),
        sa.Column('is_correct', sa.Boolean(), nullable=True),
        sa.Column('is_bookmarked', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.UniqueConstraint('session_id', 'question_number', name='uq_session_questions_number'),
    )
    op.create_index('ix_session_questions_session_id', 'session_questions', ['session_id'])
    op.create_index('ix_session_questions_question_id', 'session_questions', ['question_id'])

    op.create_table(
        'user_answers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('session_id', sa.Integer(), sa.ForeignKey('quiz_sessions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('question_id', sa.Integer(), sa.ForeignKey('questions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('option_id', sa.Integer(), sa.ForeignKey('options.id', ondelete='CASCADE'), nullable=False),
        sa.Column('is_correct', sa.Boolean(), nullable=False),
        sa.Column('duration_ms', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('idx_user_answers_session_question', 'user_answers', ['session_id', 'question_id'])

def downgrade() -> None:
    op.drop_table('user_answers')
    op.drop_table('session_questions')
    op.drop_table('quiz_sessions')
    op.drop_table('options')
    op.drop_table('questions')
    op.drop_table('quizzes')
    op.drop_table('users')
