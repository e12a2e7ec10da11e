# =============================================================================
# TESTES - Attempt State Machine
# =============================================================================
# Ciclo de vida: begin, resume, save_progress, submit, expiracao
# =============================================================================

import asyncio
from datetime import date

import pytest


class TestBegin:
    """Criacao e retomada de tentativas."""

    @pytest.mark.asyncio
    async def test_begin_creates_started_attempt(self, seeded_machine, sample_quiz, student, clock):
        """Primeiro acesso cria tentativa started com teto e duracao do quiz."""
        from quiz.models.enums import AttemptStatus

        outcome = await seeded_machine.begin("quiz-1", student)

        attempt = outcome.attempt
        assert outcome.resumed is False
        assert attempt.status is AttemptStatus.STARTED
        assert attempt.max_marks == sample_quiz.total_marks == 6
        assert attempt.duration == 10
        assert attempt.started_at == clock()
        assert attempt.owner_id == "teacher-1"
        assert attempt.token
        assert outcome.time_remaining == 600

    @pytest.mark.asyncio
    async def test_begin_twice_returns_same_attempt(self, seeded_machine, student, clock):
        """Resume idempotente: mesmo attempt_id antes de expirar."""
        first = await seeded_machine.begin("quiz-1", student)
        clock.advance(minutes=3)
        second = await seeded_machine.begin("quiz-1", student)

        assert second.attempt.id == first.attempt.id
        assert second.resumed is True
        assert second.time_remaining == 420

    @pytest.mark.asyncio
    async def test_resume_returns_saved_answers(self, seeded_machine, student, make_answers):
        """Retomada devolve as respostas salvas."""
        outcome = await seeded_machine.begin("quiz-1", student)
        await seeded_machine.save_progress(outcome.attempt.id, make_answers(q1="B"))

        resumed = await seeded_machine.begin("quiz-1", student)

        summary = resumed.attempt.summary(seeded_machine.now())
        assert [(a.question_id, a.answer) for a in summary.answers] == [("q1", "B")]

    @pytest.mark.asyncio
    async def test_email_is_case_insensitive(self, seeded_machine):
        """Roster e tentativa ignoram maiusculas no email."""
        from quiz.models.schemas import StudentIdentity

        first = await seeded_machine.begin("quiz-1", StudentIdentity(name="Ana", email="ANA@uni.edu"))
        second = await seeded_machine.begin("quiz-1", StudentIdentity(name="Ana", email="ana@UNI.EDU"))

        assert first.attempt.id == second.attempt.id

    @pytest.mark.asyncio
    async def test_concurrent_begin_creates_one_attempt(self, seeded_machine, student, attempt_store):
        """Dois begin simultaneos resultam em uma unica tentativa viva."""
        results = await asyncio.gather(
            seeded_machine.begin("quiz-1", student),
            seeded_machine.begin("quiz-1", student),
        )

        assert results[0].attempt.id == results[1].attempt.id
        assert len(await attempt_store.list_for_student("quiz-1", student.email)) == 1

    @pytest.mark.asyncio
    async def test_begin_after_submit_rejected(self, seeded_machine, student, make_answers):
        """Tentativa finalizada bloqueia nova tentativa."""
        from quiz.errors import ConflictError

        outcome = await seeded_machine.begin("quiz-1", student)
        await seeded_machine.submit(outcome.attempt.id, make_answers(q1="B"))

        with pytest.raises(ConflictError) as exc_info:
            await seeded_machine.begin("quiz-1", student)

        assert exc_info.value.message == "You have already submitted this quiz"
        assert exc_info.value.details["status"] == "graded"

    @pytest.mark.asyncio
    async def test_begin_after_blocked_rejected(self, seeded_machine, student):
        """Tentativa bloqueada tambem impede nova tentativa."""
        from quiz.errors import ConflictError

        outcome = await seeded_machine.begin("quiz-1", student)
        await seeded_machine.submit(outcome.attempt.id, [], violation_reason="tab switch")

        with pytest.raises(ConflictError):
            await seeded_machine.begin("quiz-1", student)

    @pytest.mark.asyncio
    async def test_expired_live_attempt_replaced(self, seeded_machine, student, attempt_store, clock):
        """Tentativa viva expirada vira expired e uma nova e criada."""
        from quiz.models.enums import AttemptStatus

        first = await seeded_machine.begin("quiz-1", student)
        clock.advance(minutes=10)

        second = await seeded_machine.begin("quiz-1", student)

        assert second.attempt.id != first.attempt.id
        assert second.resumed is False
        old = await attempt_store.find_by_id(first.attempt.id)
        assert old.status is AttemptStatus.EXPIRED
        assert old.time_spent == 600

    @pytest.mark.asyncio
    async def test_unknown_quiz(self, machine, student):
        """Quiz inexistente -> NotFoundError."""
        from quiz.errors import NotFoundError

        with pytest.raises(NotFoundError):
            await machine.begin("missing", student)

    @pytest.mark.asyncio
    async def test_not_on_roster(self, seeded_machine):
        """Aluno fora do roster -> NotFoundError."""
        from quiz.errors import NotFoundError
        from quiz.models.schemas import StudentIdentity

        with pytest.raises(NotFoundError) as exc_info:
            await seeded_machine.begin("quiz-1", StudentIdentity(name="Eve", email="eve@uni.edu"))

        assert exc_info.value.message == "Quiz not found or not shared with you"

    @pytest.mark.asyncio
    async def test_outside_window(self, machine, quiz_store, sample_quiz, student, attempt_store):
        """Fora da janela -> AccessDeniedError com starts_at, nada e criado."""
        from quiz.errors import AccessDeniedError
        from quiz.models.schemas import Schedule

        sample_quiz.schedule = Schedule(
            is_scheduled=True,
            start_date=date(2025, 1, 11),
            start_time="09:00",
            end_date=date(2025, 1, 11),
            end_time="10:00",
            timezone="Asia/Kolkata",
        )
        await quiz_store.save_quiz(sample_quiz)

        with pytest.raises(AccessDeniedError) as exc_info:
            await machine.begin("quiz-1", student)

        body = exc_info.value.to_dict()
        assert body["success"] is False
        assert body["message"] == "Quiz will start on 11 Jan 2025, 09:00 AM IST"
        assert body["starts_at"] == "2025-01-11T09:00:00+05:30"
        assert await attempt_store.list_for_student("quiz-1", student.email) == []

    @pytest.mark.asyncio
    async def test_default_duration(self, quiz_store, attempt_store, mock_grader, clock, sample_questions, student):
        """Quiz sem duracao usa o padrao do host."""
        from quiz.engine.attempt_engine import AttemptStateMachine
        from quiz.engine.grading_engine import QuizGradingEngine
        from quiz.engine.window import AccessibilityWindow
        from quiz.models.schemas import Quiz

        await quiz_store.save_quiz(
            Quiz(id="quiz-2", title="No duration", questions=sample_questions, shared_with=[student.email])
        )
        machine = AttemptStateMachine(
            quiz_store,
            attempt_store,
            QuizGradingEngine(grader=mock_grader),
            AccessibilityWindow(),
            clock=clock,
            default_duration=45,
        )

        outcome = await machine.begin("quiz-2", student)

        assert outcome.attempt.duration == 45


class TestSaveProgress:
    """Salvamento de progresso."""

    @pytest.mark.asyncio
    async def test_overwrites_answers(self, seeded_machine, student, clock, make_answers):
        """Last-write-wins, sem merge."""
        from quiz.models.enums import AttemptStatus

        outcome = await seeded_machine.begin("quiz-1", student)
        await seeded_machine.save_progress(outcome.attempt.id, make_answers(q1="A", q2="4"))
        clock.advance(seconds=95)

        saved = await seeded_machine.save_progress(outcome.attempt.id, make_answers(q3="hyper text"))

        assert saved.status is AttemptStatus.IN_PROGRESS
        assert [a.question_id for a in saved.answers] == ["q3"]
        assert saved.time_spent == 95

    @pytest.mark.asyncio
    async def test_other_student_cannot_save(self, seeded_machine, student, make_answers):
        """Email diferente do dono -> NotFoundError."""
        from quiz.errors import NotFoundError

        outcome = await seeded_machine.begin("quiz-1", student)

        with pytest.raises(NotFoundError):
            await seeded_machine.save_progress(outcome.attempt.id, make_answers(q1="A"), student_email="bruno@uni.edu")

    @pytest.mark.asyncio
    async def test_unknown_attempt(self, machine, make_answers):
        """Tentativa inexistente -> NotFoundError."""
        from quiz.errors import NotFoundError

        with pytest.raises(NotFoundError):
            await machine.save_progress("nope", make_answers(q1="A"))

    @pytest.mark.asyncio
    async def test_save_after_submit_rejected(self, seeded_machine, student, make_answers):
        """Tentativa terminal nao aceita progresso."""
        from quiz.errors import ConflictError

        outcome = await seeded_machine.begin("quiz-1", student)
        await seeded_machine.submit(outcome.attempt.id, make_answers(q1="B"))

        with pytest.raises(ConflictError) as exc_info:
            await seeded_machine.save_progress(outcome.attempt.id, make_answers(q1="A"))

        assert exc_info.value.message == "Quiz already submitted"

    @pytest.mark.asyncio
    async def test_save_after_expiry_rejected(self, seeded_machine, student, clock, make_answers):
        """Tempo esgotado: save_progress expira a tentativa e rejeita."""
        from quiz.errors import ConflictError

        outcome = await seeded_machine.begin("quiz-1", student)
        clock.advance(minutes=11)

        with pytest.raises(ConflictError) as exc_info:
            await seeded_machine.save_progress(outcome.attempt.id, make_answers(q1="A"))

        assert exc_info.value.details["status"] == "expired"


class TestSubmit:
    """Envio e correcao."""

    @pytest.mark.asyncio
    async def test_submit_grades_attempt(self, seeded_machine, student, clock, make_answers, attempt_store):
        """Envio normal termina em graded com nota e registros."""
        from quiz.models.enums import AttemptStatus
        from quiz.models.schemas import AnswerRecord

        outcome = await seeded_machine.begin("quiz-1", student)
        clock.advance(minutes=4)

        result = await seeded_machine.submit(
            outcome.attempt.id,
            make_answers(q1="Paris", q2="C", q3="hypertext transfer protocol"),
        )

        assert result.blocked is False
        assert result.grading.total_marks == 5
        assert result.grading.max_marks == 6

        stored = await attempt_store.find_by_id(outcome.attempt.id)
        assert stored.status is AttemptStatus.GRADED
        assert stored.total_marks == 5
        assert stored.percentage == pytest.approx(500 / 6)
        assert stored.time_spent == 240
        assert stored.submitted_at == stored.graded_at == clock()
        assert all(isinstance(a, AnswerRecord) for a in stored.answers)
        assert stored.max_marks == 6

    @pytest.mark.asyncio
    async def test_violation_blocks(self, seeded_machine, student, make_answers, attempt_store):
        """Motivo de violacao -> blocked, nota ainda calculada."""
        from quiz.models.enums import AttemptStatus

        outcome = await seeded_machine.begin("quiz-1", student)

        result = await seeded_machine.submit(
            outcome.attempt.id,
            make_answers(q1="B"),
            violation_reason="  Left fullscreen  ",
            is_auto_submit=True,
        )

        assert result.blocked is True
        stored = await attempt_store.find_by_id(outcome.attempt.id)
        assert stored.status is AttemptStatus.BLOCKED
        assert stored.violation_reason == "Left fullscreen"
        assert stored.is_auto_submit is True
        assert stored.total_marks == 2

    @pytest.mark.asyncio
    async def test_blank_violation_reason_is_ignored(self, seeded_machine, student):
        """Motivo em branco nao bloqueia."""
        outcome = await seeded_machine.begin("quiz-1", student)

        result = await seeded_machine.submit(outcome.attempt.id, [], violation_reason="   ")

        assert result.blocked is False

    @pytest.mark.asyncio
    async def test_double_submit_rejected(self, seeded_machine, student, make_answers, attempt_store):
        """Segundo envio nao recorrige nem altera a tentativa."""
        from quiz.errors import ConflictError

        outcome = await seeded_machine.begin("quiz-1", student)
        await seeded_machine.submit(outcome.attempt.id, make_answers(q1="B"))
        before = (await attempt_store.find_by_id(outcome.attempt.id)).to_dict()

        with pytest.raises(ConflictError):
            await seeded_machine.submit(outcome.attempt.id, make_answers(q1="B", q2="4"))

        assert (await attempt_store.find_by_id(outcome.attempt.id)).to_dict() == before

    @pytest.mark.asyncio
    async def test_concurrent_submit_grades_once(self, seeded_machine, student, make_answers, mock_grader):
        """Dois envios simultaneos: um vence, o outro recebe ConflictError."""
        from quiz.errors import ConflictError

        outcome = await seeded_machine.begin("quiz-1", student)

        results = await asyncio.gather(
            seeded_machine.submit(outcome.attempt.id, make_answers(q3="protocol")),
            seeded_machine.submit(outcome.attempt.id, make_answers(q3="protocol")),
            return_exceptions=True,
        )

        conflicts = [r for r in results if isinstance(r, ConflictError)]
        assert len(conflicts) == 1
        assert len(results) - len(conflicts) == 1

    @pytest.mark.asyncio
    async def test_expiry_blocks_late_submission(self, quiz_store, machine, sample_questions, student, clock, attempt_store):
        """Duracao de 1 minuto; apos 60s o envio e rejeitado como expired."""
        from quiz.errors import ConflictError
        from quiz.models.enums import AttemptStatus
        from quiz.models.schemas import Quiz

        await quiz_store.save_quiz(
            Quiz(id="short", title="Short", questions=sample_questions, duration=1, shared_with=[student.email])
        )
        outcome = await machine.begin("short", student)
        clock.advance(seconds=61)

        with pytest.raises(ConflictError) as exc_info:
            await machine.submit(outcome.attempt.id, [])

        assert exc_info.value.message == "Quiz attempt has expired"
        stored = await attempt_store.find_by_id(outcome.attempt.id)
        assert stored.status is AttemptStatus.EXPIRED
        assert stored.graded_at is None

    @pytest.mark.asyncio
    async def test_exactly_at_deadline_is_expired(self, seeded_machine, student, clock):
        """elapsed == duration*60 ja conta como expirada."""
        outcome = await seeded_machine.begin("quiz-1", student)

        clock.advance(seconds=599)
        assert seeded_machine.is_expired(outcome.attempt) is False
        clock.advance(seconds=1)
        assert seeded_machine.is_expired(outcome.attempt) is True

    @pytest.mark.asyncio
    async def test_grader_failure_still_completes(
        self, quiz_store, attempt_store, failing_grader, clock, sample_quiz, student, make_answers
    ):
        """Avaliador fora do ar: envio conclui com a aberta zerada."""
        from quiz.engine.attempt_engine import AttemptStateMachine
        from quiz.engine.grading_engine import QuizGradingEngine
        from quiz.engine.window import AccessibilityWindow
        from quiz.models.enums import AttemptStatus

        await quiz_store.save_quiz(sample_quiz)
        machine = AttemptStateMachine(
            quiz_store,
            attempt_store,
            QuizGradingEngine(grader=failing_grader),
            AccessibilityWindow(),
            clock=clock,
        )
        outcome = await machine.begin("quiz-1", student)

        result = await machine.submit(outcome.attempt.id, make_answers(q1="B", q2="4", q3="hypertext"))

        assert result.attempt.status is AttemptStatus.GRADED
        assert result.grading.total_marks == 3
        assert result.grading.results[2].marks == 0


class TestResumeByToken:
    """Retomada anonima pelo token de retomada."""

    @pytest.mark.asyncio
    async def test_resume_by_token(self, seeded_machine, student, clock):
        """Token valido devolve a mesma tentativa com tempo restante."""
        outcome = await seeded_machine.begin("quiz-1", student)
        clock.advance(minutes=2)

        resumed = await seeded_machine.resume_by_token(outcome.attempt.token)

        assert resumed.attempt.id == outcome.attempt.id
        assert resumed.resumed is True
        assert resumed.time_remaining == 480

    @pytest.mark.asyncio
    async def test_unknown_token(self, machine):
        """Token desconhecido -> NotFoundError."""
        from quiz.errors import NotFoundError

        with pytest.raises(NotFoundError):
            await machine.resume_by_token("deadbeef")

    @pytest.mark.asyncio
    async def test_token_after_expiry(self, seeded_machine, student, clock):
        """Token de tentativa expirada -> ConflictError expired."""
        from quiz.errors import ConflictError

        outcome = await seeded_machine.begin("quiz-1", student)
        clock.advance(minutes=15)

        with pytest.raises(ConflictError) as exc_info:
            await seeded_machine.resume_by_token(outcome.attempt.token)

        assert exc_info.value.details["status"] == "expired"


class TestInviteFlow:
    """Fluxo por link de convite (base64 email||quiz_id)."""

    @pytest.mark.asyncio
    async def test_preview_before_start(self, seeded_machine):
        """Convite ainda nao usado -> quiz sem tentativa."""
        from quiz.identity import InviteTokenCodec

        preview = await seeded_machine.preview_invite(InviteTokenCodec.encode("bruno@uni.edu", "quiz-1"))

        assert preview.has_started is False
        assert preview.email == "bruno@uni.edu"
        assert preview.quiz.id == "quiz-1"

    @pytest.mark.asyncio
    async def test_preview_with_resumption_token(self, seeded_machine, student):
        """Token de retomada no link -> tentativa em andamento."""
        outcome = await seeded_machine.begin("quiz-1", student)

        preview = await seeded_machine.preview_invite(outcome.attempt.token)

        assert preview.has_started is True
        assert preview.outcome.attempt.id == outcome.attempt.id

    @pytest.mark.asyncio
    async def test_preview_not_on_roster(self, seeded_machine):
        """Convite para email fora do roster -> NotFoundError."""
        from quiz.errors import NotFoundError
        from quiz.identity import InviteTokenCodec

        with pytest.raises(NotFoundError):
            await seeded_machine.preview_invite(InviteTokenCodec.encode("eve@uni.edu", "quiz-1"))

    @pytest.mark.asyncio
    async def test_begin_with_invite_uses_token_email(self, seeded_machine):
        """Email vem do token e os dados academicos do formulario."""
        from quiz.identity import InviteTokenCodec

        outcome = await seeded_machine.begin_with_invite(
            InviteTokenCodec.encode("bruno@uni.edu", "quiz-1"),
            name="Bruno",
            usn="1ab21cs002",
            branch="CSE",
            year="3",
            semester="5",
        )

        assert outcome.attempt.student.email == "bruno@uni.edu"
        assert outcome.attempt.student.usn == "1AB21CS002"

    @pytest.mark.asyncio
    async def test_both_flows_share_attempt(self, seeded_machine, student):
        """Sessao autenticada e convite enxergam a mesma tentativa viva."""
        from quiz.identity import InviteTokenCodec

        via_session = await seeded_machine.begin("quiz-1", student)
        via_invite = await seeded_machine.begin_with_invite(
            InviteTokenCodec.encode(student.email, "quiz-1"), name="Ana"
        )

        assert via_invite.attempt.id == via_session.attempt.id

    @pytest.mark.asyncio
    async def test_reopened_invite_resumes_live_attempt(self, seeded_machine):
        """Mesmo convite aberto de novo apos o inicio -> tentativa retomada."""
        from quiz.identity import InviteTokenCodec

        token = InviteTokenCodec.encode("bruno@uni.edu", "quiz-1")
        started = await seeded_machine.begin_with_invite(token, name="Bruno")

        preview = await seeded_machine.preview_invite(token)

        assert preview.has_started is True
        assert preview.outcome.resumed is True
        assert preview.outcome.attempt.id == started.attempt.id
        assert preview.outcome.time_remaining == 600

    @pytest.mark.asyncio
    async def test_reopened_invite_after_timeout(self, seeded_machine, clock):
        """Tentativa vencida nao e retomada pelo convite."""
        from quiz.identity import InviteTokenCodec

        token = InviteTokenCodec.encode("bruno@uni.edu", "quiz-1")
        await seeded_machine.begin_with_invite(token, name="Bruno")
        clock.advance(minutes=10)

        preview = await seeded_machine.preview_invite(token)

        assert preview.has_started is False

    @pytest.mark.asyncio
    async def test_begin_with_invite_blank_name(self, seeded_machine, attempt_store):
        """Nome so com espacos -> ValidationError tipado, nada persistido."""
        from quiz.errors import ValidationError
        from quiz.identity import InviteTokenCodec

        with pytest.raises(ValidationError) as exc_info:
            await seeded_machine.begin_with_invite(InviteTokenCodec.encode("bruno@uni.edu", "quiz-1"), name="   ")

        assert exc_info.value.message == "All fields are required"
        assert await attempt_store.find_for_student("quiz-1", "bruno@uni.edu") is None

    @pytest.mark.asyncio
    async def test_invalid_invite(self, seeded_machine):
        """Token que nao e base64 valido -> ValidationError."""
        from quiz.errors import ValidationError

        with pytest.raises(ValidationError):
            await seeded_machine.preview_invite("not a token!!")


class TestResultsAndDashboard:
    """Resultados do aluno e painel."""

    @pytest.mark.asyncio
    async def test_get_results(self, seeded_machine, student, make_answers):
        """Ultima tentativa finalizada."""
        outcome = await seeded_machine.begin("quiz-1", student)
        await seeded_machine.submit(outcome.attempt.id, make_answers(q1="B"))

        attempt = await seeded_machine.get_results("quiz-1", student.email)

        assert attempt.id == outcome.attempt.id
        assert attempt.total_marks == 2

    @pytest.mark.asyncio
    async def test_get_results_without_submission(self, seeded_machine, student):
        """Sem envio -> NotFoundError."""
        from quiz.errors import NotFoundError

        await seeded_machine.begin("quiz-1", student)

        with pytest.raises(NotFoundError):
            await seeded_machine.get_results("quiz-1", student.email)

    @pytest.mark.asyncio
    async def test_dashboard_expires_stale_attempt(self, seeded_machine, student, clock):
        """Painel detecta expiracao preguicosa."""
        from quiz.models.enums import AttemptStatus

        await seeded_machine.begin("quiz-1", student)
        clock.advance(minutes=30)

        rows = await seeded_machine.list_student_quizzes(student.email)

        assert len(rows) == 1
        assert rows[0].accessibility.accessible is True
        assert rows[0].latest_attempt.status is AttemptStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_dashboard_without_attempt(self, seeded_machine):
        """Quiz compartilhado sem tentativa."""
        rows = await seeded_machine.list_student_quizzes("bruno@uni.edu")

        assert [r.quiz.id for r in rows] == ["quiz-1"]
        assert rows[0].latest_attempt is None

    @pytest.mark.asyncio
    async def test_list_quiz_attempts(self, seeded_machine, student, make_answers):
        """Visao do instrutor lista tentativas de todos os alunos."""
        from quiz.identity import InviteTokenCodec

        await seeded_machine.begin("quiz-1", student)
        await seeded_machine.begin_with_invite(InviteTokenCodec.encode("bruno@uni.edu", "quiz-1"), name="Bruno")

        attempts = await seeded_machine.list_quiz_attempts("quiz-1")

        assert {a.student.email for a in attempts} == {"ana@uni.edu", "bruno@uni.edu"}
