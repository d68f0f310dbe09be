"""UI helpers bound to a :class:`~reflex_datatable.state.DataTableMixin` state.

Each builder takes the ``rx.State`` subclass that inherits from the mixin
and returns a Reflex component wired to its ``dt_*`` vars and
``handle_dt_*`` event handlers.
"""

from typing import Any

import reflex as rx

from reflex_datatable.config import DEBOUNCE_DELAY_MS


# ---------------------------------------------------------------------------
# Cells
# ---------------------------------------------------------------------------

def _cell_content(state_cls: type, row_key: Any, cell: Any) -> rx.Component:
    return rx.cond(
        cell.badge,
        rx.badge(
            cell.text,
            variant="solid",
            radius="full",
            style={"background_color": cell.color, "color": "white"},
        ),
        rx.cond(
            cell.actions.length() > 0,  # type: ignore[union-attr]
            rx.hstack(
                rx.foreach(
                    cell.actions,
                    lambda action: rx.button(
                        action,
                        size="1",
                        variant="soft",
                        on_click=[
                            rx.stop_propagation,
                            state_cls.handle_dt_action(row_key, action),
                        ],
                    ),
                ),
                spacing="1",
            ),
            rx.text(cell.text, size="2"),
        ),
    )


def _row_checkbox(state_cls: type, key: Any, selected: Any) -> rx.Component:
    return rx.box(
        rx.checkbox(
            checked=selected,
            on_change=lambda _checked: state_cls.handle_dt_toggle_row(key),
        ),
        on_click=rx.stop_propagation,
    )


def _select_all(state_cls: type) -> rx.Component:
    """Tri-state "select all": a minus button while the selection is partial."""
    return rx.cond(
        state_cls.dt_indeterminate,
        rx.icon_button(
            rx.icon("minus", size=12),
            size="1",
            variant="surface",
            on_click=state_cls.handle_dt_toggle_all(True),
        ),
        rx.checkbox(
            checked=state_cls.dt_all_selected,
            on_change=state_cls.handle_dt_toggle_all,
        ),
    )


# ---------------------------------------------------------------------------
# Table layout
# ---------------------------------------------------------------------------

def _header_cell(state_cls: type, header: Any) -> rx.Component:
    sort_icon = rx.cond(
        header.sortable,
        rx.match(
            header.sort_direction,
            ("asc", rx.icon("arrow_up", size=14)),
            ("desc", rx.icon("arrow_down", size=14)),
            rx.icon("arrow_up_down", size=14, color="var(--gray-8)"),
        ),
    )
    return rx.table.column_header_cell(
        rx.hstack(
            rx.text(header.label, weight="bold", size="2"),
            sort_icon,
            rx.cond(
                header.filter_active,
                rx.icon("filter", size=12, color="var(--accent-9)"),
            ),
            spacing="1",
            align="center",
            justify=rx.cond(header.align == "right", "end", "start"),
        ),
        width=header.width,
        cursor=rx.cond(header.sortable, "pointer", "default"),
        on_click=state_cls.handle_dt_sort(header.field),
    )


def _table_row(state_cls: type, row: Any) -> rx.Component:
    return rx.table.row(
        rx.cond(
            state_cls.dt_selectable,
            rx.table.cell(_row_checkbox(state_cls, row.key, row.selected), width="36px"),
        ),
        rx.foreach(
            row.cells,
            lambda cell: rx.table.cell(
                _cell_content(state_cls, row.key, cell),
                text_align=cell.align,
            ),
        ),
        background=rx.cond(row.selected, "var(--accent-a3)", "transparent"),
        cursor="pointer",
        on_click=state_cls.handle_dt_row_click(row.key),
    )


def _table(state_cls: type) -> rx.Component:
    return rx.table.root(
        rx.table.header(
            rx.table.row(
                rx.cond(
                    state_cls.dt_selectable,
                    rx.table.column_header_cell(_select_all(state_cls), width="36px"),
                ),
                rx.foreach(state_cls.dt_headers, lambda h: _header_cell(state_cls, h)),
            ),
        ),
        rx.table.body(
            rx.foreach(state_cls.dt_rows, lambda r: _table_row(state_cls, r)),
        ),
        variant="surface",
        size="1",
        width="100%",
    )


# ---------------------------------------------------------------------------
# Card layout (mobile)
# ---------------------------------------------------------------------------

def _card(state_cls: type, card: Any) -> rx.Component:
    return rx.card(
        rx.vstack(
            rx.hstack(
                rx.cond(
                    state_cls.dt_selectable,
                    _row_checkbox(state_cls, card.key, card.selected),
                ),
                rx.box(_cell_content(state_cls, card.key, card.title), font_weight="bold"),
                align="center",
                spacing="2",
            ),
            rx.foreach(
                card.fields,
                lambda f: rx.hstack(
                    rx.text(f.label, size="1", color="var(--gray-10)"),
                    rx.spacer(),
                    _cell_content(state_cls, card.key, f.cell),
                    width="100%",
                ),
            ),
            rx.cond(
                card.actions.length() > 0,  # type: ignore[union-attr]
                rx.hstack(
                    rx.foreach(
                        card.actions,
                        lambda action: rx.button(
                            action,
                            size="1",
                            variant="soft",
                            on_click=[
                                rx.stop_propagation,
                                state_cls.handle_dt_action(card.key, action),
                            ],
                        ),
                    ),
                    spacing="2",
                    justify="end",
                    width="100%",
                ),
            ),
            spacing="2",
            width="100%",
        ),
        width="100%",
        background=rx.cond(card.selected, "var(--accent-a3)", "var(--color-panel)"),
        on_click=state_cls.handle_dt_row_click(card.key),
    )


def _card_list(state_cls: type) -> rx.Component:
    return rx.vstack(
        rx.cond(
            state_cls.dt_selectable,
            rx.hstack(
                _select_all(state_cls),
                rx.text("Select all", size="2"),
                align="center",
                spacing="2",
            ),
        ),
        rx.foreach(state_cls.dt_cards, lambda c: _card(state_cls, c)),
        spacing="2",
        width="100%",
    )


# ---------------------------------------------------------------------------
# Pagination bar
# ---------------------------------------------------------------------------

def data_table_pagination(state_cls: type) -> rx.Component:
    """Return the footer: range label, page size picker and page buttons.

    Args:
        state_cls: The ``rx.State`` subclass that inherits from
            :class:`~reflex_datatable.state.DataTableMixin`.

    Returns:
        A Reflex component.
    """
    at_start = state_cls.dt_page <= 1
    at_end = state_cls.dt_page >= state_cls.dt_total_pages
    return rx.hstack(
        rx.text(state_cls.dt_range_label, size="2", color="var(--gray-11)"),
        rx.spacer(),
        rx.text("Rows per page", size="2", color="var(--gray-11)"),
        rx.select(
            state_cls.dt_page_size_options,
            value=state_cls.dt_page_size.to(str),  # type: ignore[union-attr]
            on_change=state_cls.handle_dt_page_size,
            size="1",
        ),
        rx.icon_button(
            rx.icon("chevrons_left", size=14),
            size="1",
            variant="ghost",
            disabled=at_start,
            on_click=state_cls.handle_dt_page(1),
        ),
        rx.icon_button(
            rx.icon("chevron_left", size=14),
            size="1",
            variant="ghost",
            disabled=at_start,
            on_click=state_cls.handle_dt_page(state_cls.dt_page - 1),
        ),
        rx.text(
            "Page ",
            state_cls.dt_page.to(str),  # type: ignore[union-attr]
            " of ",
            state_cls.dt_total_pages.to(str),  # type: ignore[union-attr]
            size="2",
        ),
        rx.icon_button(
            rx.icon("chevron_right", size=14),
            size="1",
            variant="ghost",
            disabled=at_end,
            on_click=state_cls.handle_dt_page(state_cls.dt_page + 1),
        ),
        rx.icon_button(
            rx.icon("chevrons_right", size=14),
            size="1",
            variant="ghost",
            disabled=at_end,
            on_click=state_cls.handle_dt_page(state_cls.dt_total_pages),
        ),
        align="center",
        spacing="2",
        width="100%",
        padding_y="0.5em",
    )


# ---------------------------------------------------------------------------
# Filter bar
# ---------------------------------------------------------------------------

def _value_of(state_cls: type, key: Any) -> rx.Var:
    values = state_cls.dt_filter_values
    return rx.cond(values.contains(key), values[key], "")  # type: ignore[union-attr]


def _range_control(state_cls: type, flt: Any, input_type: str) -> rx.Component:
    return rx.hstack(
        rx.input(
            type=input_type,
            placeholder=flt.label + " from",
            value=_value_of(state_cls, flt.id + "." + flt.low_key),
            on_change=state_cls.handle_dt_filter_bound(flt.id, flt.low_key),
            debounce_timeout=DEBOUNCE_DELAY_MS["filter"],
            size="1",
        ),
        rx.input(
            type=input_type,
            placeholder=flt.label + " to",
            value=_value_of(state_cls, flt.id + "." + flt.high_key),
            on_change=state_cls.handle_dt_filter_bound(flt.id, flt.high_key),
            debounce_timeout=DEBOUNCE_DELAY_MS["filter"],
            size="1",
        ),
        spacing="1",
    )


def _select_control(state_cls: type, flt: Any, options: Any) -> rx.Component:
    return rx.select.root(
        rx.select.trigger(placeholder=flt.label),
        rx.select.content(
            rx.foreach(options, lambda o: rx.select.item(o.label, value=o.value)),
        ),
        value=_value_of(state_cls, flt.id),
        on_change=state_cls.handle_dt_filter(flt.id),
        size="1",
    )


def _multi_select_control(state_cls: type, flt: Any) -> rx.Component:
    def _option(option: Any) -> rx.Component:
        return rx.checkbox(
            option.label,
            checked=state_cls.dt_multi_selected.contains(flt.id + "=" + option.value),  # type: ignore[union-attr]
            on_change=lambda checked: state_cls.handle_dt_filter_toggle(flt.id, option.value, checked),
            size="1",
        )

    return rx.popover.root(
        rx.popover.trigger(
            rx.button(
                flt.label,
                rx.icon("chevron_down", size=12),
                size="1",
                variant="surface",
            ),
        ),
        rx.popover.content(
            rx.vstack(rx.foreach(flt.options, _option), spacing="2"),
            size="1",
        ),
    )


def _filter_control(state_cls: type, flt: Any) -> rx.Component:
    text_input = rx.input(
        placeholder=rx.cond(flt.placeholder != "", flt.placeholder, flt.label),
        value=_value_of(state_cls, flt.id),
        on_change=state_cls.handle_dt_filter(flt.id),
        debounce_timeout=DEBOUNCE_DELAY_MS["search"],
        size="1",
    )
    return rx.match(
        flt.type,
        ("select", _select_control(state_cls, flt, flt.options)),
        ("multiSelect", _multi_select_control(state_cls, flt)),
        (
            "boolean",
            rx.select.root(
                rx.select.trigger(placeholder=flt.label),
                rx.select.content(
                    rx.select.item("Yes", value="true"),
                    rx.select.item("No", value="false"),
                ),
                value=_value_of(state_cls, flt.id),
                on_change=state_cls.handle_dt_filter(flt.id),
                size="1",
            ),
        ),
        (
            "date",
            rx.input(
                type="date",
                value=_value_of(state_cls, flt.id),
                on_change=state_cls.handle_dt_filter(flt.id),
                size="1",
            ),
        ),
        ("dateRange", _range_control(state_cls, flt, "date")),
        (
            "number",
            rx.cond(
                flt.range,
                _range_control(state_cls, flt, "number"),
                rx.input(
                    type="number",
                    placeholder=flt.label,
                    value=_value_of(state_cls, flt.id),
                    on_change=state_cls.handle_dt_filter(flt.id),
                    debounce_timeout=DEBOUNCE_DELAY_MS["filter"],
                    size="1",
                ),
            ),
        ),
        text_input,
    )


def data_table_filter_bar(state_cls: type) -> rx.Component:
    """Return a wrapping row of filter controls plus a "Clear all" button.

    Args:
        state_cls: The ``rx.State`` subclass that inherits from
            :class:`~reflex_datatable.state.DataTableMixin`.

    Returns:
        A Reflex component.
    """
    return rx.hstack(
        rx.icon("filter", size=14, color="var(--gray-9)"),
        rx.foreach(state_cls.dt_filters, lambda f: _filter_control(state_cls, f)),
        rx.spacer(),
        rx.cond(
            state_cls.dt_active_filter_count > 0,
            rx.button(
                rx.icon("x", size=14),
                "Clear all",
                size="1",
                variant="outline",
                on_click=state_cls.handle_dt_clear_filters,
            ),
        ),
        align="center",
        spacing="2",
        wrap="wrap",
        width="100%",
        padding_y="0.5em",
    )


# ---------------------------------------------------------------------------
# Complete table
# ---------------------------------------------------------------------------

def data_table(
    state_cls: type,
    *,
    show_filter_bar: bool = True,
    show_pagination: bool = True,
    width: str = "100%",
    **extra_props: Any,
) -> rx.Component:
    """Return a table (or a card list on narrow screens) bound to *state_cls*.

    The layout follows ``dt_mode``: ``"table"`` and ``"reduced_table"``
    render a table, ``"cards"`` renders one card per record.  The browser
    width is reported once on mount.

    Args:
        state_cls: The ``rx.State`` subclass that inherits from
            :class:`~reflex_datatable.state.DataTableMixin`.
        show_filter_bar: Render :func:`data_table_filter_bar` above the
            table.  The filter bar is never shown in card mode.
        show_pagination: Render :func:`data_table_pagination` below.
        width: CSS width of the container.
        **extra_props: Additional props forwarded to the outer ``rx.box``.

    Returns:
        A Reflex component.
    """
    body = rx.cond(
        state_cls.dt_empty,
        rx.center(
            rx.text(state_cls.dt_empty_message, color="var(--gray-10)"),
            padding="2em",
            width="100%",
        ),
        rx.cond(state_cls.dt_mode == "cards", _card_list(state_cls), _table(state_cls)),
    )

    parts: list[rx.Component] = []
    if show_filter_bar:
        parts.append(rx.cond(state_cls.dt_mode != "cards", data_table_filter_bar(state_cls)))
    parts.append(
        rx.box(
            body,
            rx.cond(
                state_cls.dt_loading,
                rx.center(
                    rx.spinner(size="3"),
                    position="absolute",
                    inset="0",
                    background="var(--black-a2)",
                ),
            ),
            position="relative",
            width="100%",
        )
    )
    if show_pagination:
        parts.append(data_table_pagination(state_cls))

    return rx.box(
        *parts,
        width=width,
        on_mount=rx.call_script("window.innerWidth", callback=state_cls.handle_dt_viewport),
        on_unmount=state_cls.handle_dt_unmount,
        **extra_props,
    )
