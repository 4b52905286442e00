"""Onboarding of recurring income sources and recurring expenses."""
from __future__ import annotations

import logging
from typing import Awaitable, Callable, Dict, Optional, Sequence

from dindin.conversation.normalizer import (
    escape_markdown,
    format_currency,
    parse_currency_amount,
    parse_due_day,
    parse_weekday,
    parse_yes_no,
    strip_leading_emoji,
    weekday_name,
)
from dindin.conversation.ports import (
    REMOVE_KEYBOARD,
    CategoryGateway,
    CategoryRecord,
    ExpenseGateway,
    IncomeGateway,
    IncomingMessage,
    Keyboard,
    Messenger,
    ReplyKeyboard,
    UserConfigGateway,
)
from dindin.conversation.states import (
    ConversationState,
    ExpenseDraft,
    Flow,
    IncomeSourceDraft,
    SetupStep,
)
from dindin.conversation.store import ConversationStore
from dindin.db.kinds import FrequencyKind, TransactionKind
from dindin.services.expenses import monthly_expenses
from dindin.services.income import monthly_income

logger = logging.getLogger(__name__)

SKIP_CATEGORY_LABEL = "⏭️ Pular seleção de categoria"

HAS_INCOME_KEYBOARD = ReplyKeyboard.of(["Sim, recebo regularmente"], ["Não, minha renda é variável"])
FREQUENCY_KEYBOARD = ReplyKeyboard.of(
    ["Mensal (um dia fixo)"], ["Quinzenal (dois dias no mês)"], ["Semanal"]
)
WEEKDAY_KEYBOARD = ReplyKeyboard.of(
    ["Segunda-feira", "Terça-feira"],
    ["Quarta-feira", "Quinta-feira"],
    ["Sexta-feira", "Sábado/Domingo"],
)
ADD_ANOTHER_INCOME_KEYBOARD = ReplyKeyboard.of(
    ["Sim, adicionar outra fonte de renda"], ["Não, continuar com despesas recorrentes"]
)
EXPENSES_DECISION_KEYBOARD = ReplyKeyboard.of(
    ["Sim, configurar despesas recorrentes"], ["Não, terminar configuração"]
)
ADD_ANOTHER_EXPENSE_KEYBOARD = ReplyKeyboard.of(
    ["Sim, adicionar outra despesa"], ["Não, finalizar configuração"]
)

START_MESSAGE = (
    "Vamos configurar suas receitas regulares. Isso vai me ajudar a monitorar seu dinheiro e te "
    "lembrar quando o pagamento chegar.\n\nVocê recebe alguma renda mensal regular (como salário)?"
)
START_AFTER_PERSONALITY_MESSAGE = (
    "Agora, vamos configurar suas finanças! Isso vai me ajudar a monitorar seu dinheiro.\n\n"
    "Você recebe alguma renda mensal regular (como salário)?"
)
HAS_INCOME_REPROMPT = "Por favor, responda se você recebe alguma renda regular (sim ou não)."
INCOME_NAME_PROMPT = "Ótimo! Como podemos chamar essa fonte de renda? (Ex: Salário, Freelance mensal, etc)"
ANOTHER_INCOME_NAME_PROMPT = (
    "Como podemos chamar essa nova fonte de renda? (Ex: Freelance, Aluguel recebido, etc)"
)
VARIABLE_INCOME_MESSAGE = (
    "Entendi que sua renda é variável. Você pode registrar suas receitas conforme recebê-las!\n\n"
    "Para registrar uma receita, basta me dizer algo como 'Recebi 500 reais de freelance'."
)
INVALID_AMOUNT_PROMPT = "Por favor, informe um valor numérico válido maior que zero."
INVALID_DAY_PROMPT = "Por favor, informe um dia válido entre 1 e 31."
INVALID_WEEKDAY_PROMPT = "Por favor, escolha um dia da semana válido."
INVALID_FREQUENCY_PROMPT = (
    "Por favor, escolha uma das opções de frequência disponíveis: Mensal, Quinzenal ou Semanal."
)
EMPTY_NAME_PROMPT = "Por favor, informe um nome."
ADD_ANOTHER_INCOME_PROMPT = "Você gostaria de adicionar outra fonte de renda recorrente?"
EXPENSES_DECISION_PROMPT = (
    "Agora, você gostaria de configurar despesas recorrentes (como aluguel, assinaturas, etc)?"
)
EXPENSE_NAME_PROMPT = (
    "Vamos configurar uma despesa recorrente. Qual é o nome desta despesa? (Ex: Aluguel, Netflix, Academia)"
)
ADD_ANOTHER_EXPENSE_PROMPT = "Você gostaria de adicionar outra despesa recorrente?"
FINAL_KEYBOARD_MESSAGE = "Use os comandos ou simplesmente me conte sobre suas transações financeiras!"
GENERIC_ERROR_MESSAGE = (
    "Desculpe, ocorreu um erro ao processar sua mensagem. Por favor, tente novamente mais tarde."
)

StepHandler = Callable[[ConversationState, IncomingMessage], Awaitable[None]]


def build_category_keyboard(categories: Sequence[CategoryRecord]) -> ReplyKeyboard:
    """Two expense categories per row followed by the skip button."""

    labels = [
        f"{category.icon} {category.name}".strip()
        for category in categories
        if category.kind == TransactionKind.EXPENSE.value
    ]
    rows = [labels[index : index + 2] for index in range(0, len(labels), 2)]
    rows.append([SKIP_CATEGORY_LABEL])
    return ReplyKeyboard.of(*rows)


def resolve_category_id(text: str, categories: Sequence[CategoryRecord]) -> Optional[int]:
    if "pular seleção" in text.lower():
        return None
    name = strip_leading_emoji(text)
    for category in categories:
        if category.kind == TransactionKind.EXPENSE.value and category.name == name:
            return category.id
    return None


def describe_income_schedule(frequency: FrequencyKind, days: Sequence[int]) -> str:
    if frequency is FrequencyKind.MONTHLY:
        return f"Todo dia {days[0]} do mês"
    if frequency is FrequencyKind.BIWEEKLY:
        return f"Dias {days[0]} e {days[1]} do mês"
    return f"Toda {weekday_name(days[0])}"


class IncomeConfigMachine:
    """Walks the user through income sources, then recurring expenses, then a summary."""

    flows = frozenset({Flow.INCOME_SETUP, Flow.EXPENSE_SETUP})

    def __init__(
        self,
        store: ConversationStore,
        incomes: IncomeGateway,
        expenses: ExpenseGateway,
        categories: CategoryGateway,
        users: UserConfigGateway,
        messenger: Messenger,
    ) -> None:
        self._store = store
        self._incomes = incomes
        self._expenses = expenses
        self._categories = categories
        self._users = users
        self._messenger = messenger
        self._handlers: Dict[SetupStep, StepHandler] = {
            SetupStep.INITIAL: self._handle_initial,
            SetupStep.AWAITING_INCOME_NAME: self._handle_income_name,
            SetupStep.AWAITING_INCOME_AMOUNT: self._handle_income_amount,
            SetupStep.AWAITING_INCOME_FREQUENCY: self._handle_income_frequency,
            SetupStep.AWAITING_INCOME_DAYS_MONTHLY: self._handle_income_day_monthly,
            SetupStep.AWAITING_INCOME_DAYS_BIWEEKLY_FIRST: self._handle_income_day_biweekly_first,
            SetupStep.AWAITING_INCOME_DAYS_BIWEEKLY_SECOND: self._handle_income_day_biweekly_second,
            SetupStep.AWAITING_INCOME_DAYS_WEEKLY: self._handle_income_weekday,
            SetupStep.AWAITING_ADD_ANOTHER: self._handle_add_another_income,
            SetupStep.AWAITING_EXPENSES_DECISION: self._handle_expenses_decision,
            SetupStep.AWAITING_EXPENSE_NAME: self._handle_expense_name,
            SetupStep.AWAITING_EXPENSE_AMOUNT: self._handle_expense_amount,
            SetupStep.AWAITING_EXPENSE_DUE_DAY: self._handle_expense_due_day,
            SetupStep.AWAITING_EXPENSE_CATEGORY: self._handle_expense_category,
            SetupStep.AWAITING_ADD_ANOTHER_EXPENSE: self._handle_add_another_expense,
        }

    async def is_user_in_flow(self, user_id: int) -> bool:
        state = await self._store.get(user_id)
        return state is not None and state.flow in self.flows

    async def start_income_flow(self, message: IncomingMessage, after_personality: bool = False) -> None:
        try:
            state = ConversationState(
                user_id=message.user_id,
                chat_id=message.chat_id,
                flow=Flow.INCOME_SETUP,
                step=SetupStep.INITIAL,
            )
            previous = await self._store.get(message.user_id)
            if previous is not None:
                state.personality = previous.personality
            await self._store.set(state)
            logger.info(
                "Income setup started",
                extra={"user_id": message.user_id, "flow": state.flow.value, "step": state.step.value},
            )
            text = START_AFTER_PERSONALITY_MESSAGE if after_personality else START_MESSAGE
            await self._send(state, text, HAS_INCOME_KEYBOARD)
        except Exception:
            await self._abort(message, "Failed to start income setup")

    async def start_expense_flow(self, message: IncomingMessage) -> None:
        try:
            state = ConversationState(
                user_id=message.user_id,
                chat_id=message.chat_id,
                flow=Flow.EXPENSE_SETUP,
                step=SetupStep.AWAITING_EXPENSE_NAME,
            )
            await self._store.set(state)
            logger.info(
                "Expense setup started",
                extra={"user_id": message.user_id, "flow": state.flow.value, "step": state.step.value},
            )
            await self._send(state, EXPENSE_NAME_PROMPT, REMOVE_KEYBOARD)
        except Exception:
            await self._abort(message, "Failed to start expense setup")

    async def handle_message(self, message: IncomingMessage) -> bool:
        state = await self._store.get(message.user_id)
        if state is None or state.flow not in self.flows:
            return False

        handler = self._handlers.get(state.step) if isinstance(state.step, SetupStep) else None
        if handler is None:
            logger.warning(
                "Unknown setup step, clearing state",
                extra={"user_id": message.user_id, "step": str(state.step)},
            )
            await self._store.delete(message.user_id)
            return False

        try:
            await handler(state, message)
        except Exception:
            await self._abort(message, "Setup conversation step failed")
        return True

    async def finish_configuration(self, state: ConversationState) -> None:
        """Mark the setup as done and send the monthly summary."""

        await self._users.mark_income_setup_completed(state.user_id)
        sources = await self._incomes.list_income_sources(state.user_id)
        expenses = await self._expenses.list_recurring_expenses(state.user_id)
        await self._store.delete(state.user_id)
        logger.info("Financial setup completed", extra={"user_id": state.user_id})

        await self._send(state, render_summary(sources, expenses))
        await self._send(state, FINAL_KEYBOARD_MESSAGE, REMOVE_KEYBOARD)

    # income steps

    async def _handle_initial(self, state: ConversationState, message: IncomingMessage) -> None:
        answer = parse_yes_no(message.text)
        if answer is None:
            await self._send(state, HAS_INCOME_REPROMPT)
            return
        if answer:
            await self._move(state, SetupStep.AWAITING_INCOME_NAME)
            await self._send(state, INCOME_NAME_PROMPT, REMOVE_KEYBOARD)
            return
        await self._send(state, VARIABLE_INCOME_MESSAGE)
        await self._ask_about_expenses(state)

    async def _handle_income_name(self, state: ConversationState, message: IncomingMessage) -> None:
        name = (message.text or "").strip()
        if not name:
            await self._send(state, EMPTY_NAME_PROMPT)
            return
        state.income.name = name
        await self._move(state, SetupStep.AWAITING_INCOME_AMOUNT)
        await self._send(
            state,
            f"Ótimo! Quanto você recebe de {escape_markdown(name)} normalmente? "
            "(Digite apenas o valor numérico, ex: 2500)",
        )

    async def _handle_income_amount(self, state: ConversationState, message: IncomingMessage) -> None:
        amount = parse_currency_amount(message.text)
        if amount is None or amount <= 0:
            await self._send(state, INVALID_AMOUNT_PROMPT)
            return
        state.income.amount = amount
        await self._move(state, SetupStep.AWAITING_INCOME_FREQUENCY)
        name = escape_markdown(state.income.name)
        await self._send(state, f"Com qual frequência você recebe {name}?", FREQUENCY_KEYBOARD)

    async def _handle_income_frequency(self, state: ConversationState, message: IncomingMessage) -> None:
        text = (message.text or "").lower()
        name = escape_markdown(state.income.name)
        if "mensal" in text:
            state.income.frequency = FrequencyKind.MONTHLY
            await self._move(state, SetupStep.AWAITING_INCOME_DAYS_MONTHLY)
            await self._send(
                state,
                f"Em qual dia do mês você costuma receber {name}? "
                "(Digite apenas o número do dia, ex: 5 para dia 5)",
                REMOVE_KEYBOARD,
            )
        elif "quinzenal" in text:
            state.income.frequency = FrequencyKind.BIWEEKLY
            await self._move(state, SetupStep.AWAITING_INCOME_DAYS_BIWEEKLY_FIRST)
            await self._send(
                state,
                f"Qual é o primeiro dia do mês em que você recebe {name}? "
                "(Digite apenas o número do dia, ex: 15 para dia 15)",
                REMOVE_KEYBOARD,
            )
        elif "semanal" in text:
            state.income.frequency = FrequencyKind.WEEKLY
            await self._move(state, SetupStep.AWAITING_INCOME_DAYS_WEEKLY)
            await self._send(state, f"Em qual dia da semana você costuma receber {name}?", WEEKDAY_KEYBOARD)
        else:
            await self._send(state, INVALID_FREQUENCY_PROMPT)

    async def _handle_income_day_monthly(self, state: ConversationState, message: IncomingMessage) -> None:
        day = parse_due_day(message.text)
        if day is None:
            await self._send(state, INVALID_DAY_PROMPT)
            return
        state.income.days = [day]
        await self._save_income_source(state)

    async def _handle_income_day_biweekly_first(
        self, state: ConversationState, message: IncomingMessage
    ) -> None:
        day = parse_due_day(message.text)
        if day is None:
            await self._send(state, INVALID_DAY_PROMPT)
            return
        state.income.days = [day]
        await self._move(state, SetupStep.AWAITING_INCOME_DAYS_BIWEEKLY_SECOND)
        await self._send(
            state,
            f"Qual é o segundo dia do mês em que você recebe {escape_markdown(state.income.name)}? "
            "(Digite apenas o número do dia)",
        )

    async def _handle_income_day_biweekly_second(
        self, state: ConversationState, message: IncomingMessage
    ) -> None:
        day = parse_due_day(message.text)
        if day is None:
            await self._send(state, INVALID_DAY_PROMPT)
            return
        state.income.days = [*state.income.days[:1], day]
        await self._save_income_source(state)

    async def _handle_income_weekday(self, state: ConversationState, message: IncomingMessage) -> None:
        weekday = parse_weekday(message.text)
        if weekday is None:
            await self._send(state, INVALID_WEEKDAY_PROMPT)
            return
        state.income.days = [weekday]
        await self._save_income_source(state)

    async def _save_income_source(self, state: ConversationState) -> None:
        draft = state.income
        if draft.name is None or draft.amount is None or draft.frequency is None:
            raise ValueError("Income draft is incomplete")

        await self._incomes.create_income_source(
            state.user_id, draft.name, draft.amount, draft.frequency, list(draft.days), False
        )
        logger.info(
            "Income source saved",
            extra={"user_id": state.user_id, "flow": state.flow.value, "step": state.step.value},
        )
        await self._move(state, SetupStep.AWAITING_ADD_ANOTHER)

        text = (
            "✅ Fonte de renda configurada com sucesso!\n\n"
            f"*{escape_markdown(draft.name)}*: {format_currency(draft.amount)}\n"
            f"📅 Recebimento: {describe_income_schedule(draft.frequency, draft.days)}\n"
            "\nVou te avisar na data esperada de recebimento para confirmar. 📝"
        )
        await self._send(state, text)
        await self._send(state, ADD_ANOTHER_INCOME_PROMPT, ADD_ANOTHER_INCOME_KEYBOARD)

    async def _handle_add_another_income(self, state: ConversationState, message: IncomingMessage) -> None:
        if parse_yes_no(message.text):
            state.income = IncomeSourceDraft()
            await self._move(state, SetupStep.AWAITING_INCOME_NAME)
            await self._send(state, ANOTHER_INCOME_NAME_PROMPT, REMOVE_KEYBOARD)
            return
        await self._ask_about_expenses(state)

    async def _ask_about_expenses(self, state: ConversationState) -> None:
        await self._move(state, SetupStep.AWAITING_EXPENSES_DECISION)
        await self._send(state, EXPENSES_DECISION_PROMPT, EXPENSES_DECISION_KEYBOARD)

    # expense steps

    async def _handle_expenses_decision(self, state: ConversationState, message: IncomingMessage) -> None:
        if parse_yes_no(message.text):
            await self._begin_expense(state)
            return
        await self.finish_configuration(state)

    async def _begin_expense(self, state: ConversationState) -> None:
        state.expense = ExpenseDraft()
        await self._move(state, SetupStep.AWAITING_EXPENSE_NAME, flow=Flow.EXPENSE_SETUP)
        await self._send(state, EXPENSE_NAME_PROMPT, REMOVE_KEYBOARD)

    async def _handle_expense_name(self, state: ConversationState, message: IncomingMessage) -> None:
        name = (message.text or "").strip()
        if not name:
            await self._send(state, EMPTY_NAME_PROMPT)
            return
        state.expense.name = name
        await self._move(state, SetupStep.AWAITING_EXPENSE_AMOUNT)
        await self._send(
            state,
            f"Qual é o valor mensal de {escape_markdown(name)}? (Digite apenas o valor numérico, ex: 150)",
        )

    async def _handle_expense_amount(self, state: ConversationState, message: IncomingMessage) -> None:
        amount = parse_currency_amount(message.text)
        if amount is None or amount <= 0:
            await self._send(state, INVALID_AMOUNT_PROMPT)
            return
        state.expense.amount = amount
        await self._move(state, SetupStep.AWAITING_EXPENSE_DUE_DAY)
        await self._send(
            state,
            f"Em qual dia do mês você costuma pagar {escape_markdown(state.expense.name)}? "
            "(Digite apenas o número do dia, ex: 10 para dia 10)",
        )

    async def _handle_expense_due_day(self, state: ConversationState, message: IncomingMessage) -> None:
        day = parse_due_day(message.text)
        if day is None:
            await self._send(state, INVALID_DAY_PROMPT)
            return
        state.expense.due_day = day
        categories = await self._categories.list_categories()
        await self._move(state, SetupStep.AWAITING_EXPENSE_CATEGORY)
        await self._send(
            state,
            f"Em qual categoria {escape_markdown(state.expense.name)} se encaixa?",
            build_category_keyboard(categories),
        )

    async def _handle_expense_category(self, state: ConversationState, message: IncomingMessage) -> None:
        categories = await self._categories.list_categories()
        state.expense.category_id = resolve_category_id(message.text or "", categories)
        draft = state.expense
        if draft.name is None or draft.amount is None or draft.due_day is None:
            raise ValueError("Expense draft is incomplete")

        await self._expenses.create_recurring_expense(
            state.user_id, draft.name, draft.amount, draft.due_day, draft.category_id, False
        )
        logger.info(
            "Recurring expense saved",
            extra={"user_id": state.user_id, "flow": state.flow.value, "step": state.step.value},
        )
        await self._move(state, SetupStep.AWAITING_ADD_ANOTHER_EXPENSE)

        lines = [
            "✅ Despesa recorrente configurada com sucesso!\n",
            f"*{escape_markdown(draft.name)}*: {format_currency(draft.amount)}",
            f"📅 Vencimento: Todo dia {draft.due_day} do mês",
        ]
        category = next((item for item in categories if item.id == draft.category_id), None)
        if category is not None:
            lines.append(f"📊 Categoria: {category.icon} {category.name}")
        lines.append("\nVou te avisar próximo à data de vencimento para você não esquecer de pagar. 📝")
        await self._send(state, "\n".join(lines))
        await self._send(state, ADD_ANOTHER_EXPENSE_PROMPT, ADD_ANOTHER_EXPENSE_KEYBOARD)

    async def _handle_add_another_expense(self, state: ConversationState, message: IncomingMessage) -> None:
        if parse_yes_no(message.text):
            await self._begin_expense(state)
            return
        await self.finish_configuration(state)

    # helpers

    async def _move(self, state: ConversationState, step: SetupStep, *, flow: Optional[Flow] = None) -> None:
        state.advance(step, flow=flow)
        await self._store.set(state)

    async def _send(self, state: ConversationState, text: str, keyboard: Optional[Keyboard] = None) -> None:
        await self._messenger.send(state.chat_id, text, keyboard)

    async def _abort(self, message: IncomingMessage, reason: str) -> None:
        logger.exception(reason, extra={"user_id": message.user_id})
        await self._store.delete(message.user_id)
        await self._messenger.send(message.chat_id, GENERIC_ERROR_MESSAGE, REMOVE_KEYBOARD)


def render_summary(sources: Sequence, expenses: Sequence) -> str:
    lines = ["🎉 *Configuração financeira concluída!*", ""]

    if sources:
        lines.append("📈 *Fontes de Renda Configuradas:*")
        lines.extend(
            f"- *{escape_markdown(source.name)}*: {format_currency(source.amount)}" for source in sources
        )
        lines.append("")

    if expenses:
        lines.append("📉 *Despesas Recorrentes Configuradas:*")
        lines.extend(
            f"- *{escape_markdown(expense.name)}*: {format_currency(expense.amount)} (Dia {expense.due_day})"
            for expense in expenses
        )
        lines.append("")

    total_income = monthly_income(sources)
    total_expenses = monthly_expenses(expenses)
    balance = total_income - total_expenses
    if total_income > 0 or total_expenses > 0:
        lines.extend(
            [
                "💰 *Balanço Mensal Estimado:*",
                f"- Receitas: {format_currency(total_income)}",
                f"- Despesas: {format_currency(total_expenses)}",
                f"- Saldo: {format_currency(balance)}",
                "",
            ]
        )

    if balance > 0:
        lines.append(
            "✅ Seu balanço mensal é positivo! Considere destinar uma parte para economias ou investimentos."
        )
        lines.append("")
    elif balance < 0:
        lines.append(
            "⚠️ Seu balanço mensal é negativo. Considere revisar suas despesas ou buscar aumentar sua renda."
        )
        lines.append("")

    lines.extend(
        [
            "Você pode gerenciar suas fontes de renda e despesas recorrentes a qualquer momento usando os comandos:",
            "- /configurar\\_renda - Configurar fontes de renda",
            "- /configurar\\_despesas - Configurar despesas recorrentes",
            "",
            "Agora estou pronto para te ajudar a acompanhar suas finanças! 🚀",
        ]
    )
    return "\n".join(lines)


__all__ = [
    "IncomeConfigMachine",
    "SKIP_CATEGORY_LABEL",
    "build_category_keyboard",
    "describe_income_schedule",
    "render_summary",
    "resolve_category_id",
]
