"""
Client HTTP du tuteur IA (API OpenRouter, format chat completions).

Un seul appel, sans nouvelle tentative. Le dépassement du délai lève
UpstreamTimeoutError ; toute autre défaillance renvoie un message de repli.
"""

import logging

import requests

from app.config import settings
from app.exceptions import UpstreamTimeoutError

logger = logging.getLogger(__name__)

FALLBACK_REPLY = (
    "Je n'arrive pas à joindre mon service d'IA pour le moment, sans doute à cause d'une forte demande. "
    "Repose ta question dans un instant ou reformule-la plus simplement."
)

CONVERSATION_ROLES = ("user", "assistant")


def build_system_prompt(student_name: str, class_name: str = None, grade: str = None, school_name: str = None) -> str:
    class_name = class_name or "ta classe"
    grade = grade or "ton niveau"
    school_name = school_name or "ton établissement"
    return (
        f"Tu es un tuteur IA qui aide {student_name}, élève de {class_name} à {school_name}.\n\n"
        "Consignes :\n"
        "- Donne des réponses pédagogiques claires et concises\n"
        f"- Utilise un langage adapté au niveau {grade}\n"
        "- Sois encourageant et bienveillant\n"
        "- Reste centré sur la question posée\n\n"
        f"Élève : {student_name} | Classe : {class_name} | Niveau : {grade}"
    )


def prepare_messages(history, system_prompt: str, size: int = None) -> list[dict]:
    """Prompt système puis les `size` derniers messages utilisateur / assistant."""
    size = size or settings.AI_HISTORY_SIZE
    recent = list(history)[-size:]
    return [{"role": "system", "content": system_prompt}] + [
        {"role": m.role, "content": m.content} for m in recent if m.role in CONVERSATION_ROLES
    ]


def complete(messages: list[dict]) -> str:
    """Envoie la conversation et retourne la réponse de l'assistant."""
    if not settings.OPENROUTER_API_KEY:
        logger.warning("Clé OpenRouter non configurée, réponse de repli envoyée")
        return FALLBACK_REPLY

    try:
        response = requests.post(
            settings.OPENROUTER_URL,
            json={
                "model": settings.OPENROUTER_MODEL,
                "messages": messages,
                "max_tokens": settings.AI_MAX_TOKENS,
                "temperature": 0.7,
                "stream": False,
            },
            headers={
                "Authorization": f"Bearer {settings.OPENROUTER_API_KEY}",
                "HTTP-Referer": settings.SITE_URL,
                "X-Title": settings.SITE_NAME,
            },
            timeout=settings.AI_TIMEOUT_SECONDS,
        )
    except requests.exceptions.Timeout:
        logger.warning("Délai dépassé pour l'appel IA (%ss)", settings.AI_TIMEOUT_SECONDS)
        raise UpstreamTimeoutError(
            "Le service d'IA met trop de temps à répondre. Veuillez réessayer.", error="ai_timeout"
        )
    except requests.exceptions.RequestException as e:
        logger.warning("Appel IA impossible : %s", e)
        return FALLBACK_REPLY

    if response.status_code != 200:
        logger.warning("Erreur de l'API IA %s : %s", response.status_code, response.text[:500])
        return FALLBACK_REPLY

    try:
        return response.json()["choices"][0]["message"]["content"]
    except (ValueError, KeyError, IndexError, TypeError):
        logger.warning("Réponse de l'API IA au format inattendu")
        return FALLBACK_REPLY
