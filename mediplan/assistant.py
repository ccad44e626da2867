"""Keyword-driven chat assistant over the store's derived views.

The assistant is a fixed, ordered chain of rules.  Each rule pairs a keyword
predicate with a French text template; the first rule whose predicate matches
the lower-cased query produces the answer.  There is no language model and no
network call.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

import structlog

from mediplan import time_utils
from mediplan.catalog import appointment_type_label
from mediplan.formatting import calculate_age, format_currency, format_date
from mediplan.queries import find_by_id
from mediplan.scheduler import Scheduler, TimerHandle

if TYPE_CHECKING:
    from mediplan.store import ClinicStore


logger = structlog.get_logger(__name__)

GREETING = (
    "Bonjour ! 👋 Je suis votre assistant IA MediPlan. Je peux vous aider à:\n\n"
    "• Analyser vos rendez-vous\n"
    "• Voir les paiements en attente\n"
    "• Obtenir des statistiques\n"
    "• Vous donner des recommandations\n\n"
    "Que puis-je faire pour vous ?"
)

QUICK_ACTIONS: List[Dict[str, str]] = [
    {"label": "RDV aujourd'hui", "query": "Quels sont mes rendez-vous aujourd'hui ?"},
    {"label": "Patients récents", "query": "Montre-moi les patients récents"},
    {"label": "Paiements", "query": "Quels paiements sont en attente ?"},
    {"label": "Statistiques", "query": "Donne-moi un résumé des statistiques"},
]

HELP_TEXT = (
    "🤖 **Je peux vous aider avec:**\n\n"
    "• **Rendez-vous:** \"Quels sont mes RDV aujourd'hui ?\"\n"
    "• **Patients:** \"Montre-moi les patients récents\"\n"
    "• **Paiements:** \"Quels paiements sont en attente ?\"\n"
    "• **Statistiques:** \"Donne-moi un résumé\"\n"
    "• **Conseils:** \"Des suggestions pour améliorer ?\"\n\n"
    "Posez-moi vos questions en langage naturel !"
)

FALLBACK_TEXT = (
    "Je n'ai pas bien compris votre demande. 🤔\n\n"
    "Vous pouvez me demander:\n"
    "• Les RDV du jour\n"
    "• Les patients récents\n"
    "• Les paiements en attente\n"
    "• Un résumé statistique\n"
    "• Des suggestions d'amélioration"
)

# Absence rate (percent) above which the assistant recommends reminders.
HIGH_ABSENCE_RATE = 10
# Pending amount above which the assistant recommends payment reminders.
HIGH_PENDING_AMOUNT = 1000
SMALL_PRACTICE_SIZE = 50
RECENT_PATIENTS = 5
LISTED_PAYMENTS = 5


def _contains_any(text: str, *words: str) -> bool:
    return any(word in text for word in words)


def _percent(value: float) -> str:
    value = round(float(value), 1)
    return str(int(value)) if value.is_integer() else str(value)


@dataclass
class ChatMessage:
    id: int
    type: str
    content: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "type": self.type, "content": self.content}


Rule = Tuple[str, Callable[[str], bool], Callable[[], str]]


@dataclass
class ClinicAssistant:
    """Answers free-text questions about the cabinet from a :class:`ClinicStore`."""

    store: "ClinicStore"
    scheduler: Optional[Scheduler] = None
    reply_delay: Optional[float] = None
    messages: List[ChatMessage] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._timers: Scheduler = self.scheduler or self.store.scheduler
        self.scheduler = self._timers
        if self.reply_delay is None:
            self.reply_delay = self.store.settings.assistant_delay
        self._ids = itertools.count(1)
        if not self.messages:
            self._append("bot", GREETING)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def rules(self) -> List[Rule]:
        """Return the rule chain in evaluation order."""

        return [
            (
                "today_appointments",
                lambda q: "rendez-vous" in q and _contains_any(q, "aujourd", "today"),
                self._today_appointments,
            ),
            (
                "recent_patients",
                lambda q: "patient" in q and _contains_any(q, "récent", "nouveau", "dernier"),
                self._recent_patients,
            ),
            (
                "payments",
                lambda q: _contains_any(q, "paiement", "impayé", "attente", "facture"),
                self._payments,
            ),
            (
                "statistics",
                lambda q: _contains_any(q, "statistique", "résumé", "bilan", "performance"),
                self._statistics,
            ),
            (
                "suggestions",
                lambda q: _contains_any(q, "suggestion", "conseil", "améliorer", "optimiser"),
                self._suggestions,
            ),
            (
                "help",
                lambda q: _contains_any(q, "aide", "help", "quoi", "faire"),
                lambda: HELP_TEXT,
            ),
        ]

    def match(self, query: str) -> str:
        """Return the name of the rule that answers ``query``."""

        text = (query or "").lower()
        for name, predicate, _ in self.rules():
            if predicate(text):
                return name
        return "fallback"

    def answer(self, query: str) -> str:
        """Compute the reply for ``query`` immediately."""

        text = (query or "").lower()
        for name, predicate, respond in self.rules():
            if predicate(text):
                logger.debug("assistant_rule_matched", rule=name)
                return respond()
        logger.debug("assistant_rule_matched", rule="fallback")
        return FALLBACK_TEXT

    def ask(self, query: str, on_reply: Optional[Callable[[ChatMessage], None]] = None) -> Optional[TimerHandle]:
        """Record the user's message and schedule the reply after ``reply_delay``.

        Blank queries are ignored and return ``None``.
        """

        if not (query or "").strip():
            return None
        self._append("user", query)

        def _reply() -> None:
            message = self._append("bot", self.answer(query))
            if on_reply is not None:
                on_reply(message)

        return self._timers.call_later(float(self.reply_delay or 0), _reply)

    def history(self) -> List[Dict[str, Any]]:
        return [message.to_dict() for message in self.messages]

    def reset(self) -> None:
        self.messages = []
        self._ids = itertools.count(1)
        self._append("bot", GREETING)

    # ------------------------------------------------------------------
    # Responses
    # ------------------------------------------------------------------
    def _append(self, kind: str, content: str) -> ChatMessage:
        message = ChatMessage(id=next(self._ids), type=kind, content=content)
        self.messages.append(message)
        return message

    def _patient_label(self, patient_id: Optional[str]) -> str:
        patient = find_by_id(self.store.patients, patient_id) or {}
        return f"{patient.get('firstName')} {patient.get('lastName')}"

    def _today_appointments(self) -> str:
        today = time_utils.today_iso()
        todays = sorted(
            (a for a in self.store.appointments if a.get("date") == today),
            key=lambda a: a.get("time") or "",
        )
        if not todays:
            return "📅 Aucun rendez-vous prévu aujourd'hui. Profitez de cette journée calme ! 🌟"
        lines = [f"📅 **{len(todays)} rendez-vous aujourd'hui:**\n\n"]
        for appointment in todays:
            lines.append(
                f"• **{appointment.get('time')}** - {self._patient_label(appointment.get('patientId'))}"
                f" ({appointment_type_label(appointment.get('type'))})\n"
            )
        return "".join(lines)

    def _recent_patients(self) -> str:
        patients = self.store.patients
        recent = sorted(patients, key=lambda p: p.get("createdAt") or "", reverse=True)[:RECENT_PATIENTS]
        lines = [f"👥 **{len(patients)} patients au total. Voici les 5 plus récents:**\n\n"]
        for patient in recent:
            age = calculate_age(patient.get("dateOfBirth"))
            lines.append(
                f"• **{patient.get('firstName')} {patient.get('lastName')}** - "
                f"{'' if age is None else age} ans, inscrit le {format_date(patient.get('createdAt'))}\n"
            )
        return "".join(lines)

    def _payments(self) -> str:
        # Broader than the dashboard figure: "present" visits count as unpaid too.
        unpaid = [
            a
            for a in self.store.appointments
            if not a.get("paid") and a.get("status") in ("termine", "present")
        ]
        if not unpaid:
            return "✅ Excellent ! Tous les paiements sont à jour. Aucune facture en attente."
        total = sum(float(a.get("fee") or 0) for a in unpaid)
        lines = [
            f"💰 **{len(unpaid)} paiements en attente** pour un total de **{format_currency(total)}**:\n\n"
        ]
        for appointment in unpaid[:LISTED_PAYMENTS]:
            lines.append(
                f"• {self._patient_label(appointment.get('patientId'))} - "
                f"{format_currency(appointment.get('fee'))} ({format_date(appointment.get('date'))})\n"
            )
        if len(unpaid) > LISTED_PAYMENTS:
            lines.append(f"\n... et {len(unpaid) - LISTED_PAYMENTS} autres.\n")
        lines.append(
            "\n💡 **Suggestion:** Envoyez des rappels de paiement via SMS ou WhatsApp "
            "pour accélérer les encaissements."
        )
        return "".join(lines)

    def _statistics(self) -> str:
        stats = self.store.get_stats()
        rate = float(stats["absenceRate"])
        if rate > HIGH_ABSENCE_RATE:
            analysis = (
                "Le taux d'absence est élevé. Pensez à envoyer des rappels automatiques "
                "24h avant chaque RDV."
            )
        else:
            analysis = "Excellent taux de présence ! Continuez ainsi."
        return (
            f"📊 **Résumé de votre cabinet {self.store.cabinet.get('name', '')}:**\n\n"
            f"• 👥 **{stats['totalPatients']}** patients enregistrés\n"
            f"• 📅 **{stats['todayAppointments']}** RDV aujourd'hui, "
            f"**{stats['upcomingAppointments']}** à venir\n"
            f"• 💰 Revenus du mois: **{format_currency(stats['monthlyRevenue'])}**\n"
            f"• ⏳ En attente: **{format_currency(stats['pendingPayments'])}**\n"
            f"• ✅ Taux de présence: **{_percent(100 - rate)}%**\n"
            f"• 🔔 **{stats['remindersSent']}** rappels envoyés\n\n"
            f"💡 **Analyse:** {analysis}"
        )

    def _suggestions(self) -> str:
        stats = self.store.get_stats()
        parts = ["💡 **Suggestions pour optimiser votre cabinet:**\n\n"]
        if float(stats["absenceRate"]) > HIGH_ABSENCE_RATE:
            parts.append(
                "🔔 **Rappels automatiques:** Activez les rappels WhatsApp 24h avant chaque RDV "
                "pour réduire les absences.\n\n"
            )
        if stats["pendingPayments"] > HIGH_PENDING_AMOUNT:
            parts.append(
                f"💰 **Paiements:** Vous avez {format_currency(stats['pendingPayments'])} en attente. "
                "Configurez les rappels de paiement automatiques.\n\n"
            )
        if len(self.store.patients) < SMALL_PRACTICE_SIZE:
            parts.append(
                "📈 **Croissance:** Développez votre présence en ligne et demandez des avis "
                "à vos patients satisfaits.\n\n"
            )
        parts.append("⚡ **Automatisation:** Utilisez la facturation automatique après chaque consultation.\n\n")
        parts.append("📱 **Mobile:** Proposez la prise de RDV en ligne pour simplifier la vie de vos patients.")
        return "".join(parts)


__all__ = [
    "ChatMessage",
    "ClinicAssistant",
    "FALLBACK_TEXT",
    "GREETING",
    "HELP_TEXT",
    "QUICK_ACTIONS",
]
