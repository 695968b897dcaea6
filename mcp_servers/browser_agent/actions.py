"""Closed set of executor actions.

Each action name the bridge may carry maps to one frozen dataclass holding its
decoded parameters. `parse_action` is the only way in; names outside the set
raise UnknownActionError. `run_action` looks the handler up by variant type.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar

from .errors import InvalidParamsError, UnknownActionError
from .overlay import PageOverlay
from .page import DEFAULT_SCROLL_DISTANCE, SCROLL_DIRECTIONS

if TYPE_CHECKING:
    from .browser_context import BrowserContext


# ─────────────────────────────────────────────────────────────────────────────
# Param decoding
# ─────────────────────────────────────────────────────────────────────────────


def _opt_str(params: dict[str, Any], key: str) -> str | None:
    value = params.get(key)
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        raise InvalidParamsError(f"{key} must be a string")
    return str(value)


def _req_str(params: dict[str, Any], key: str, message: str) -> str:
    value = _opt_str(params, key)
    if not value:
        raise InvalidParamsError(message)
    return value


def _opt_num(params: dict[str, Any], key: str) -> float | None:
    value = params.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        try:
            return float(value)
        except (TypeError, ValueError):
            raise InvalidParamsError(f"{key} must be a number") from None
    return value


def _opt_int(params: dict[str, Any], key: str) -> int | None:
    value = _opt_num(params, key)
    return None if value is None else int(value)


def _flag(params: dict[str, Any], key: str) -> bool:
    return bool(params.get(key) or False)


# ─────────────────────────────────────────────────────────────────────────────
# Variants
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class Navigate:
    name: ClassVar[str] = "navigate"
    url: str

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> Navigate:
        return cls(url=_req_str(params, "url", "URL is required"))


@dataclass(frozen=True, slots=True)
class Click:
    name: ClassVar[str] = "click"
    selector: str | None = None
    x: float | None = None
    y: float | None = None
    button: str = "left"
    click_count: int = 1

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> Click:
        selector = _opt_str(params, "selector") or None
        x = _opt_num(params, "x")
        y = _opt_num(params, "y")
        if selector is None and (x is None or y is None):
            raise InvalidParamsError("selector or coordinates required")
        return cls(
            selector=selector,
            x=x,
            y=y,
            button=_opt_str(params, "button") or "left",
            click_count=_opt_int(params, "clickCount") or 1,
        )


@dataclass(frozen=True, slots=True)
class Type:
    name: ClassVar[str] = "type"
    text: str
    selector: str | None = None
    clear_first: bool = False
    delay: float = 0

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> Type:
        return cls(
            text=_req_str(params, "text", "text is required"),
            selector=_opt_str(params, "selector") or None,
            clear_first=_flag(params, "clearFirst"),
            delay=_opt_num(params, "delay") or 0,
        )


@dataclass(frozen=True, slots=True)
class Scroll:
    name: ClassVar[str] = "scroll"
    direction: str = "down"
    distance: float = DEFAULT_SCROLL_DISTANCE
    selector: str | None = None
    x: float | None = None
    y: float | None = None

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> Scroll:
        direction = _opt_str(params, "direction") or "down"
        if direction not in SCROLL_DIRECTIONS:
            raise InvalidParamsError(f"direction must be one of {', '.join(SCROLL_DIRECTIONS)}")
        return cls(
            direction=direction,
            distance=_opt_num(params, "distance") or DEFAULT_SCROLL_DISTANCE,
            selector=_opt_str(params, "selector") or None,
            x=_opt_num(params, "x"),
            y=_opt_num(params, "y"),
        )


@dataclass(frozen=True, slots=True)
class Screenshot:
    name: ClassVar[str] = "screenshot"
    format: str = "png"
    quality: int | None = None
    full_page: bool = False

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> Screenshot:
        fmt = (_opt_str(params, "format") or "png").lower()
        if fmt not in ("png", "jpeg", "webp"):
            raise InvalidParamsError("format must be png, jpeg or webp")
        return cls(format=fmt, quality=_opt_int(params, "quality"), full_page=_flag(params, "fullPage"))


@dataclass(frozen=True, slots=True)
class Extract:
    name: ClassVar[str] = "extract"
    selector: str

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> Extract:
        return cls(selector=_req_str(params, "selector", "selector is required"))


@dataclass(frozen=True, slots=True)
class Evaluate:
    name: ClassVar[str] = "evaluate"
    script: str

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> Evaluate:
        return cls(script=_req_str(params, "script", "script is required"))


@dataclass(frozen=True, slots=True)
class GetPageInfo:
    name: ClassVar[str] = "get_page_info"

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> GetPageInfo:  # noqa: ARG003
        return cls()


@dataclass(frozen=True, slots=True)
class GetTabs:
    name: ClassVar[str] = "get_tabs"

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> GetTabs:  # noqa: ARG003
        return cls()


@dataclass(frozen=True, slots=True)
class SwitchTab:
    name: ClassVar[str] = "switch_tab"
    tab_id: str

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> SwitchTab:
        return cls(tab_id=_req_str(params, "tabId", "tabId is required"))


@dataclass(frozen=True, slots=True)
class PressKey:
    name: ClassVar[str] = "press_key"
    key: str

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> PressKey:
        return cls(key=_req_str(params, "key", "key is required"))


@dataclass(frozen=True, slots=True)
class SelectOption:
    name: ClassVar[str] = "select_option"
    selector: str
    value: str | None = None
    text: str | None = None
    index: int | None = None

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> SelectOption:
        return cls(
            selector=_req_str(params, "selector", "selector is required"),
            value=_opt_str(params, "value"),
            text=_opt_str(params, "text"),
            index=_opt_int(params, "index"),
        )


@dataclass(frozen=True, slots=True)
class GoBack:
    name: ClassVar[str] = "go_back"

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> GoBack:  # noqa: ARG003
        return cls()


@dataclass(frozen=True, slots=True)
class GoForward:
    name: ClassVar[str] = "go_forward"

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> GoForward:  # noqa: ARG003
        return cls()


@dataclass(frozen=True, slots=True)
class Reload:
    name: ClassVar[str] = "reload"

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> Reload:  # noqa: ARG003
        return cls()


@dataclass(frozen=True, slots=True)
class GetConsoleLogs:
    name: ClassVar[str] = "get_console_logs"

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> GetConsoleLogs:  # noqa: ARG003
        return cls()


@dataclass(frozen=True, slots=True)
class ShowOverlay:
    name: ClassVar[str] = "show_overlay"
    status: str = ""

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> ShowOverlay:
        return cls(status=_opt_str(params, "status") or "")


@dataclass(frozen=True, slots=True)
class HideOverlay:
    name: ClassVar[str] = "hide_overlay"

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> HideOverlay:  # noqa: ARG003
        return cls()


@dataclass(frozen=True, slots=True)
class UpdateOverlayStatus:
    name: ClassVar[str] = "update_overlay_status"
    status: str
    shimmer: bool = False

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> UpdateOverlayStatus:
        return cls(status=_req_str(params, "status", "status is required"), shimmer=_flag(params, "shimmer"))


@dataclass(frozen=True, slots=True)
class HighlightElement:
    name: ClassVar[str] = "highlight_element"
    selector: str

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> HighlightElement:
        return cls(selector=_req_str(params, "selector", "selector is required"))


Action = (
    Navigate
    | Click
    | Type
    | Scroll
    | Screenshot
    | Extract
    | Evaluate
    | GetPageInfo
    | GetTabs
    | SwitchTab
    | PressKey
    | SelectOption
    | GoBack
    | GoForward
    | Reload
    | GetConsoleLogs
    | ShowOverlay
    | HideOverlay
    | UpdateOverlayStatus
    | HighlightElement
)

ACTION_TYPES: tuple[type, ...] = (
    Navigate,
    Click,
    Type,
    Scroll,
    Screenshot,
    Extract,
    Evaluate,
    GetPageInfo,
    GetTabs,
    SwitchTab,
    PressKey,
    SelectOption,
    GoBack,
    GoForward,
    Reload,
    GetConsoleLogs,
    ShowOverlay,
    HideOverlay,
    UpdateOverlayStatus,
    HighlightElement,
)

_BY_NAME: dict[str, type] = {cls.name: cls for cls in ACTION_TYPES}


def parse_action(name: str, params: dict[str, Any] | None = None) -> Action:
    cls = _BY_NAME.get(str(name or ""))
    if cls is None:
        raise UnknownActionError(str(name))
    return cls.from_params(params if isinstance(params, dict) else {})


# ─────────────────────────────────────────────────────────────────────────────
# Execution
# ─────────────────────────────────────────────────────────────────────────────

Handler = Callable[[Any, "BrowserContext"], Any]
_HANDLERS: dict[type, Handler] = {}


def _handles(cls: type) -> Callable[[Handler], Handler]:
    def register(fn: Handler) -> Handler:
        _HANDLERS[cls] = fn
        return fn

    return register


@_handles(Navigate)
def _navigate(action: Navigate, ctx: BrowserContext) -> dict[str, Any]:
    page = ctx.get_active_page()
    waiter = page.expect_navigation()
    try:
        page.navigate(action.url)
    except Exception:
        waiter.cancel()
        raise
    try:
        waiter.wait()
    except TimeoutError:
        # Slow pages still report wherever they got to.
        pass
    return page.get_page_info()


@_handles(Click)
def _click(action: Click, ctx: BrowserContext) -> dict[str, Any]:
    page = ctx.get_active_page()
    if action.selector:
        return {"clicked": True, "element": page.click_element(action.selector)}
    page.click_at(action.x, action.y, button=action.button, click_count=action.click_count)
    return {"clicked": True}


@_handles(Type)
def _type(action: Type, ctx: BrowserContext) -> dict[str, Any]:
    page = ctx.get_active_page()
    if action.selector:
        page.type_in_element(action.selector, action.text, clear_first=action.clear_first, delay_ms=action.delay)
    else:
        page.type_text(action.text, action.delay)
    return {"typed": True, "length": len(action.text)}


@_handles(Scroll)
def _scroll(action: Scroll, ctx: BrowserContext) -> dict[str, Any]:
    page = ctx.get_active_page()
    if action.selector:
        page.scroll_to_element(action.selector)
        return {"scrolled": True}
    if action.x is not None and action.y is not None:
        page.scroll_to(action.x, action.y)
        return {"scrolled": True}
    pos = page.scroll(action.direction, action.distance)
    return {"scrollX": pos["x"], "scrollY": pos["y"]}


@_handles(Screenshot)
def _screenshot(action: Screenshot, ctx: BrowserContext) -> dict[str, Any]:
    page = ctx.get_active_page()
    image = page.capture_screenshot(
        format=action.format,
        quality=action.quality,
        capture_beyond_viewport=action.full_page,
    )
    viewport = page.get_viewport_size()
    return {"image": image, "width": viewport["width"], "height": viewport["height"], "format": action.format}


@_handles(Extract)
def _extract(action: Extract, ctx: BrowserContext) -> dict[str, Any]:
    return ctx.get_active_page().extract(action.selector)


@_handles(Evaluate)
def _evaluate(action: Evaluate, ctx: BrowserContext) -> dict[str, Any]:
    return {"result": ctx.get_active_page().evaluate(action.script)}


@_handles(GetPageInfo)
def _get_page_info(action: GetPageInfo, ctx: BrowserContext) -> dict[str, Any]:  # noqa: ARG001
    return ctx.get_active_page().get_page_info()


@_handles(GetTabs)
def _get_tabs(action: GetTabs, ctx: BrowserContext) -> dict[str, Any]:  # noqa: ARG001
    return {"tabs": ctx.get_all_tabs_info()}


@_handles(SwitchTab)
def _switch_tab(action: SwitchTab, ctx: BrowserContext) -> dict[str, Any]:
    ctx.switch_to_tab(action.tab_id)
    return {"switched": True}


@_handles(PressKey)
def _press_key(action: PressKey, ctx: BrowserContext) -> dict[str, Any]:
    ctx.get_active_page().press_key(action.key)
    return {"pressed": True, "key": action.key}


@_handles(SelectOption)
def _select_option(action: SelectOption, ctx: BrowserContext) -> dict[str, Any]:
    result = ctx.get_active_page().select_option(
        action.selector, value=action.value, text=action.text, index=action.index
    )
    return {"selected": True, **result}


@_handles(GoBack)
def _go_back(action: GoBack, ctx: BrowserContext) -> dict[str, Any]:  # noqa: ARG001
    return {"navigated": ctx.get_active_page().go_back()}


@_handles(GoForward)
def _go_forward(action: GoForward, ctx: BrowserContext) -> dict[str, Any]:  # noqa: ARG001
    return {"navigated": ctx.get_active_page().go_forward()}


@_handles(Reload)
def _reload(action: Reload, ctx: BrowserContext) -> dict[str, Any]:  # noqa: ARG001
    ctx.get_active_page().reload()
    return {"reloaded": True}


@_handles(GetConsoleLogs)
def _get_console_logs(action: GetConsoleLogs, ctx: BrowserContext) -> dict[str, Any]:  # noqa: ARG001
    return {"logs": ctx.get_active_page().get_console_logs()}


@_handles(ShowOverlay)
def _show_overlay(action: ShowOverlay, ctx: BrowserContext) -> dict[str, Any]:
    return {"shown": PageOverlay(ctx.get_active_page()).show(action.status)}


@_handles(HideOverlay)
def _hide_overlay(action: HideOverlay, ctx: BrowserContext) -> dict[str, Any]:  # noqa: ARG001
    return {"hidden": PageOverlay(ctx.get_active_page()).hide()}


@_handles(UpdateOverlayStatus)
def _update_overlay_status(action: UpdateOverlayStatus, ctx: BrowserContext) -> dict[str, Any]:
    return {"updated": PageOverlay(ctx.get_active_page()).update_status(action.status, action.shimmer)}


@_handles(HighlightElement)
def _highlight_element(action: HighlightElement, ctx: BrowserContext) -> dict[str, Any]:
    return {"highlighted": PageOverlay(ctx.get_active_page()).highlight(action.selector)}


def run_action(action: Action, ctx: BrowserContext) -> Any:
    handler = _HANDLERS.get(type(action))
    if handler is None:
        raise UnknownActionError(getattr(action, "name", type(action).__name__))
    return handler(action, ctx)


def execute(name: str, params: dict[str, Any] | None, ctx: BrowserContext) -> Any:
    """Decode and run one bridge request against the tab registry."""
    return run_action(parse_action(name, params), ctx)


__all__ = ["ACTION_TYPES", "Action", "execute", "parse_action", "run_action"]
