"""Utility helpers for rendering the command overview of the bot."""
from __future__ import annotations

from aiogram.types import BotCommand

from dindin.conversation.normalizer import escape_markdown

COMMANDS = [
    ("start", "Iniciar o assistente financeiro"),
    ("metas", "Ver suas metas financeiras"),
    ("novameta", "Criar uma nova meta"),
    ("metadetalhes", "Ver detalhes de uma meta"),
    ("lembrete", "Criar lembrete para uma meta"),
    ("relatorio", "Relatório do mês"),
    ("hoje", "Relatório de hoje"),
    ("semana", "Relatório da semana"),
    ("mes", "Relatório do mês"),
    ("configurar_renda", "Configurar fontes de renda"),
    ("configurar_despesas", "Configurar despesas recorrentes"),
    ("cancelar", "Cancelar a conversa em andamento"),
    ("ajuda", "Mostrar comandos disponíveis"),
]

TRANSACTION_EXAMPLES = [
    '"Almoço no restaurante 32,50"',
    '"Café 5,00"',
    '"Salário mensal 2500"',
    '"Recebi 100 de presente"',
]


def bot_commands() -> list[BotCommand]:
    return [BotCommand(command=command, description=description) for command, description in COMMANDS]


def render_help() -> str:
    """Return the formatted help message."""

    lines = ["📋 *Comandos Disponíveis:*"]
    lines.extend(f"/{escape_markdown(command)} - {description}" for command, description in COMMANDS)
    lines.append("")
    lines.append("✏️ *Como registrar transações:*")
    lines.append("Basta escrever naturalmente! Por exemplo:")
    lines.extend(f"• {example}" for example in TRANSACTION_EXAMPLES)
    return "\n".join(lines)


__all__ = ["COMMANDS", "bot_commands", "render_help"]
