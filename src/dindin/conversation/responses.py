"""Message texts that change with the personality chosen by the user."""
from __future__ import annotations

from datetime import date, timezone, tzinfo
from typing import Optional, Sequence

from dindin.conversation.normalizer import escape_markdown, format_currency
from dindin.db.kinds import Personality, ReminderFrequency, TransactionKind, normalize_personality

PERSONALITY_LABELS: dict[Personality, str] = {
    Personality.FRIENDLY: "😊 Amigável e Tranquilo",
    Personality.SASSY: "😜 Debochado e Engraçado",
    Personality.PROFESSIONAL: "👔 Profissional e Conciso",
}

PERSONALITY_KEYWORDS: dict[Personality, tuple[str, ...]] = {
    Personality.FRIENDLY: ("amigável", "amigavel", "tranquilo"),
    Personality.SASSY: ("debochado", "engraçado", "engracado"),
    Personality.PROFESSIONAL: ("profissional", "conciso"),
}

_RESPONSES: dict[Personality, dict[str, str]] = {
    Personality.FRIENDLY: {
        "introduction": (
            "Olá, {first_name}! 👋\n\n"
            "Sou o DinDin AI, seu assistente financeiro pessoal. Estou aqui para te ajudar a cuidar "
            "do seu dinheiro de um jeito simples e tranquilo.\n\n"
            "Você pode me contar sobre suas despesas e receitas de forma natural, e eu vou "
            "registrá-las automaticamente.\n\n"
            "📝 *Exemplos de como você pode me usar:*\n"
            "• \"Almoço no restaurante 32,50\"\n"
            "• \"Compras no mercado 157,90\"\n"
            "• \"Recebi salário 2500\"\n\n"
            "Vamos começar? Escolha como você prefere que eu me comunique com você:"
        ),
        "personality_confirmation": (
            "Ótimo! Vou ser amigável e tranquilo nas nossas conversas. 😊"
        ),
        "not_transaction": (
            "Hmm, não consegui entender isso como uma transação financeira. Você pode me contar "
            "sobre seus gastos ou ganhos? Por exemplo \"café da manhã 15 reais\" ou "
            "\"recebi 50 de presente\"."
        ),
        "expense_confirmation": (
            "✅ Anotei sua despesa com {description}. {amount} foram registrados na categoria "
            "{category}."
        ),
        "income_confirmation": (
            "✅ Ótimas notícias! Registrei {amount} de receita: {description}. Categoria: {category}."
        ),
        "goal_create_prompt": (
            "Que ótimo que você quer criar uma meta financeira! Isso vai te ajudar a realizar seus "
            "sonhos com mais organização. 😊\n\n"
            "Por favor, me diga qual é o valor total que você precisa alcançar para essa meta?"
        ),
        "goal_initial_amount_prompt": (
            "Legal! Você já tem algum valor guardado para começar essa meta? Se sim, quanto?"
        ),
        "goal_target_date_prompt": (
            "Até quando você gostaria de alcançar essa meta? Ter uma data ajuda a manter o foco! "
            "Se não tiver uma data específica em mente, pode me dizer 'sem data'."
        ),
        "goal_creation_success": (
            "✅ Meta criada com sucesso! 🎯\n\n*{title}*\nValor total: {target_amount}{date_line}\n"
            "Valor inicial: {current_amount}\nProgresso atual: {progress}%{progress_bar}\n\n"
            "Vou te acompanhar nessa jornada! Você pode adicionar valores à sua meta quando quiser, "
            "basta me dizer algo como \"Adicionar 50 reais na meta {title}\". 😊"
        ),
        "goal_contribution_success": (
            "✅ Adicionei {amount} à sua meta \"*{title}*\"!\n\n"
            "*Novo saldo:* {current_amount} de {target_amount}\n*Progresso:* {progress}%{progress_bar}"
        ),
        "goal_completed": (
            "\n\n🎉 *PARABÉNS! Você atingiu sua meta!* 🎉\nQue conquista incrível!"
        ),
        "goal_reminder_success": (
            "✅ Lembrete {frequency} criado para sua meta! Vou te avisar regularmente para você "
            "continuar progredindo. 😊"
        ),
        "goal_reminder_notification": (
            "🎯 Que tal dar mais um passo na sua meta *{title}*? Você já tem {current_amount} de "
            "{target_amount} ({progress}%)."
        ),
    },
    Personality.SASSY: {
        "introduction": (
            "E aí, {first_name}! 🤘\n\n"
            "Sou o DinDin AI, seu assistente financeiro com zero paciência para desculpas furadas "
            "sobre gastos!\n\n"
            "Pode mandar a real sobre onde tá jogando seu dinheiro que eu anoto tudo. 😂\n\n"
            "📝 *Exemplos do que pode mandar pra mim:*\n"
            "• \"Hambúrguer artesanal hipster 47,90\" (tô julgando já...)\n"
            "• \"Compras no mercado 157,90\"\n"
            "• \"Recebi salário 2500\" (hora de gastar tudo em besteira, né?)\n\n"
            "Vamos nessa? Escolhe aí como você quer que eu te zoe:"
        ),
        "personality_confirmation": (
            "Beleza! Vou ser debochado e engraçado, espero que aguente as verdades! 😜"
        ),
        "not_transaction": (
            "Oi??? Tô esperando você falar de dinheiro e você me vem com isso? Fala de novo, mas "
            "dessa vez menciona quanto custou ou quanto recebeu, blz?"
        ),
        "expense_confirmation": (
            "Lá se foi mais um dinheirinho! 💸 {amount} jogados fora com {description}. "
            "Categoria: {category} (como se isso melhorasse a situação)"
        ),
        "income_confirmation": (
            "Uhuuul, dinheiro na conta! 🤑 {amount} caíram do céu como {description}. "
            "Categoria: {category}. Quanto tempo até gastar tudo?"
        ),
        "goal_create_prompt": (
            "Nossa, alguém aqui tá sonhando alto, hein? Vamos lá... 🙄\n\n"
            "Quanto custa esse sonho de consumo? (ou seja, qual o valor total da meta?)"
        ),
        "goal_initial_amount_prompt": (
            "E aí, já tem alguma graninha guardada pra isso, ou começou a economizar só na "
            "imaginação? Me conta quanto já separou (se é que separou alguma coisa)..."
        ),
        "goal_target_date_prompt": (
            "E quando pretende realizar esse sonho de consumo? Amanhã? Daqui a 100 anos? 😂\n"
            "Me dá uma data (ou diga 'sem data' se não tiver coragem de se comprometer)."
        ),
        "goal_creation_success": (
            "Meta criada! 🎯\n\n*{title}*\nValor: {target_amount} (tá rico, hein?){date_line}\n"
            "Valor inicial: {current_amount} (melhor que nada, eu acho?)\n"
            "Progresso: {progress}%{progress_bar}\n\n"
            "Agora é ralar, me dizendo coisas como \"Adicionar 50 reais na meta {title}\"."
        ),
        "goal_contribution_success": (
            "Olha só, sobrou dinheiro! {amount} na meta \"*{title}*\".\n\n"
            "*Saldo:* {current_amount} de {target_amount}\n*Progresso:* {progress}%{progress_bar}"
        ),
        "goal_completed": "\n\n🎉 Quem diria, você conseguiu! Tô chocado.",
        "goal_reminder_success": (
            "Lembrete {frequency} criado! Vou ficar no seu pé até essa meta sair do papel. 😏"
        ),
        "goal_reminder_notification": (
            "Ei, lembra da meta *{title}*? Pois é, {current_amount} de {target_amount} "
            "({progress}%). Bora guardar um dinheirinho hoje?"
        ),
    },
    Personality.PROFESSIONAL: {
        "introduction": (
            "Prezado(a) {first_name},\n\n"
            "Sou o DinDin AI, seu assistente financeiro pessoal. Estou aqui para auxiliá-lo(a) no "
            "registro e análise de suas transações financeiras com precisão e eficiência.\n\n"
            "📝 *Exemplos de registros:*\n"
            "• \"Restaurante corporativo 32,50\"\n"
            "• \"Supermercado 157,90\"\n"
            "• \"Recebi honorários 2500\"\n\n"
            "Selecione seu estilo de comunicação preferido:"
        ),
        "personality_confirmation": (
            "Configuração concluída. Utilizarei comunicação profissional e concisa. 👔"
        ),
        "not_transaction": (
            "Não foi possível identificar uma transação financeira válida. Por favor, especifique o "
            "valor e a natureza da transação (ex: \"alimentação 25,00\" ou \"recebimento de 150,00\")."
        ),
        "expense_confirmation": (
            "Despesa registrada: {amount} - {description}. Categoria: {category}. "
            "Registro efetuado com sucesso."
        ),
        "income_confirmation": (
            "Receita registrada: {amount} - {description}. Categoria: {category}. "
            "Registro efetuado com sucesso."
        ),
        "goal_create_prompt": (
            "Inicializando procedimento de criação de meta financeira.\n\n"
            "Por favor, informe o valor monetário total necessário para a conclusão desta meta "
            "(valor numérico):"
        ),
        "goal_initial_amount_prompt": (
            "Valor monetário já alocado para esta meta (opcional).\n\n"
            "Caso já possua recursos destinados a este objetivo, informe o montante inicial:"
        ),
        "goal_target_date_prompt": (
            "Data prevista para a conclusão da meta (opcional).\n\n"
            "Informe-a no formato DD/MM/AAAA ou indique 'sem prazo' para objetivo de longo prazo:"
        ),
        "goal_creation_success": (
            "Meta financeira registrada.\n\n*{title}*\nValor alvo: {target_amount}{date_line}\n"
            "Valor inicial: {current_amount}\nProgresso: {progress}%{progress_bar}\n\n"
            "Para registrar aportes, utilize: \"Adicionar 50 reais na meta {title}\"."
        ),
        "goal_contribution_success": (
            "Aporte de {amount} registrado na meta \"*{title}*\".\n\n"
            "*Saldo:* {current_amount} de {target_amount}\n*Progresso:* {progress}%{progress_bar}"
        ),
        "goal_completed": "\n\nMeta concluída. Objetivo financeiro atingido.",
        "goal_reminder_success": "Lembrete {frequency} registrado para a meta.",
        "goal_reminder_notification": (
            "Acompanhamento da meta *{title}*: {current_amount} de {target_amount} ({progress}%)."
        ),
    },
}

REMINDER_FREQUENCY_LABELS: dict[ReminderFrequency, str] = {
    ReminderFrequency.DAILY: "diário",
    ReminderFrequency.WEEKLY: "semanal",
    ReminderFrequency.MONTHLY: "mensal",
}

NO_GOALS_MESSAGE = (
    "Você ainda não tem nenhuma meta financeira. Para criar uma, diga 'Quero criar uma meta para "
    "[objetivo]' ou use /novameta."
)


def get_response(personality: Personality | str | None, key: str, **values: object) -> str:
    """Render ``key`` for ``personality``, falling back to the friendly wording.

    Text values are Markdown-escaped, they usually carry names typed by the user.
    """

    responses = _RESPONSES[normalize_personality(personality)]
    template = responses.get(key) or _RESPONSES[Personality.FRIENDLY][key]
    escaped = {
        name: escape_markdown(value) if isinstance(value, str) else value for name, value in values.items()
    }
    return template.format(**escaped)


def match_personality(text: str) -> Optional[Personality]:
    normalised = (text or "").strip().lower()
    for personality, keywords in PERSONALITY_KEYWORDS.items():
        if any(keyword in normalised for keyword in keywords):
            return personality
    return None


def render_progress_bar(percentage: float, length: int = 10) -> str:
    limited = min(100.0, max(0.0, float(percentage)))
    filled = round(limited / 100 * length)
    return "\n[" + "█" * filled + "▒" * (length - filled) + "]"


def progress_percentage(current_amount: float, target_amount: float) -> int:
    if float(target_amount) <= 0:
        return 0
    return int(round(float(current_amount) / float(target_amount) * 100))


def goal_progress_values(
    title: str,
    target_amount: float,
    current_amount: float,
    target_date: Optional[date] = None,
) -> dict[str, object]:
    progress = progress_percentage(current_amount, target_amount)
    date_line = f"\nData alvo: {target_date:%d/%m/%Y}" if target_date else ""
    return {
        "title": title,
        "target_amount": format_currency(target_amount),
        "current_amount": format_currency(current_amount),
        "progress": progress,
        "progress_bar": render_progress_bar(progress),
        "date_line": date_line,
    }


def render_goal_list(goals: Sequence) -> str:
    """Progress overview of every goal, completed ones marked with a check."""

    if not goals:
        return NO_GOALS_MESSAGE

    lines = ["🎯 *Suas metas financeiras:*", ""]
    for position, goal in enumerate(goals, start=1):
        values = goal_progress_values(goal.title, goal.target_amount, goal.current_amount, goal.target_date)
        marker = "✅ " if goal.completed else ""
        lines.append(f"{position}. {marker}*{escape_markdown(goal.title)}*{values['date_line']}")
        lines.append(
            f"{values['current_amount']} de {values['target_amount']} ({values['progress']}%)"
            f"{values['progress_bar']}"
        )
        lines.append("")
    return "\n".join(lines).rstrip()


def render_goal_titles(goals: Sequence) -> str:
    return "\n".join(f"- {escape_markdown(goal.title)}" for goal in goals)


def _goal_encouragement(progress: float, days_remaining: Optional[int]) -> str:
    if progress >= 100:
        return "🎉 *Meta concluída!* Parabéns pela conquista!"
    if days_remaining == 0:
        return "⚠️ *Atenção!* Hoje é o último dia para sua meta!"
    if progress > 80:
        return "🚀 Você está quase lá! Continue assim!"
    if progress > 50:
        return "👍 Você já passou da metade! Bom trabalho!"
    if progress > 25:
        return "👏 Você está fazendo um bom progresso!"
    return "💪 Toda jornada começa com o primeiro passo!"


def render_goal_details(goal, statistics) -> str:
    """Full view of one goal: amounts, deadline, pace forecast and a closing nudge."""

    lines = [
        f"🎯 *Meta: {escape_markdown(goal.title)}*",
        "",
        f"*Valor alvo:* {format_currency(goal.target_amount)}",
    ]
    if goal.target_date:
        deadline = f"*Data alvo:* {goal.target_date:%d/%m/%Y}"
        if statistics.days_remaining is not None:
            deadline += f" (faltam {statistics.days_remaining} dias)"
        lines.append(deadline)
    lines.append(f"*Valor atual:* {format_currency(goal.current_amount)}")
    lines.append(f"*Valor restante:* {format_currency(statistics.remaining_amount)}")
    lines.append(f"*Progresso:* {statistics.progress:.1f}%{render_progress_bar(statistics.progress)}")
    if statistics.estimated_completion and statistics.progress < 100:
        lines.append(f"*Previsão de conclusão:* {statistics.estimated_completion:%d/%m/%Y} (no ritmo atual)")
    if goal.completed and statistics.progress < 100:
        lines.append("✅ Marcada como concluída.")
    lines.append("")
    lines.append(_goal_encouragement(statistics.progress, statistics.days_remaining))
    return "\n".join(lines)


def _transaction_line(transaction, tz: tzinfo) -> str:
    emoji = "💰" if transaction.kind == TransactionKind.INCOME.value else "💸"
    when = transaction.transaction_date
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    icon = transaction.category.icon if transaction.category else ""
    return (
        f"{emoji} {when.astimezone(tz):%d/%m} - {icon} {escape_markdown(transaction.description)}: "
        f"{format_currency(transaction.amount)}"
    )


def render_report(title: str, summary, tz: tzinfo, recent_limit: int = 10) -> str:
    """Totals, per-category breakdown and the latest transactions of a period."""

    lines = [
        f"📊 *Relatório Financeiro - {title}*",
        "",
        f"💰 *Receitas:* {format_currency(summary.income)}",
        f"💸 *Despesas:* {format_currency(summary.expense)}",
        f"🏦 *Saldo:* {format_currency(summary.balance)}",
        "",
        "✅ Suas finanças estão positivas!"
        if summary.balance >= 0
        else "⚠️ Cuidado! Suas despesas estão maiores que suas receitas.",
    ]

    if not summary.transactions:
        lines.extend(["", "📭 Não há transações registradas neste período."])
    else:
        lines.extend(["", "📋 *Detalhamento por Categoria:*"])
        headings = ((TransactionKind.EXPENSE, "💸 *Despesas:*"), (TransactionKind.INCOME, "💰 *Receitas:*"))
        for kind, heading in headings:
            categories = summary.categories_of(kind)
            if categories:
                lines.extend(["", heading])
                lines.extend(
                    f"{category.icon} {category.name}: {format_currency(category.total)}" for category in categories
                )
        lines.extend(["", "📝 *Últimas Transações:*"])
        lines.extend(_transaction_line(transaction, tz) for transaction in summary.transactions[:recent_limit])

    lines.extend(["", "💡 *Dica:* Use /ajuda para ver os comandos disponíveis."])
    return "\n".join(lines)


__all__ = [
    "NO_GOALS_MESSAGE",
    "PERSONALITY_LABELS",
    "REMINDER_FREQUENCY_LABELS",
    "get_response",
    "goal_progress_values",
    "match_personality",
    "progress_percentage",
    "render_goal_details",
    "render_goal_list",
    "render_goal_titles",
    "render_progress_bar",
    "render_report",
]
