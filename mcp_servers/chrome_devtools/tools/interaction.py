"""
Page interaction tools.

Selectors and values are always embedded with js_literal, so quotes inside a
selector cannot break out of the generated script.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import Field

from ..browser_session import TabSession
from ..server.types import ToolDescriptor
from .base import TabArgs, human_delay, js_literal, tool, wait_for

if TYPE_CHECKING:
    from ..server.context import ServerContext

CLICK_WAIT_TIMEOUT = 10.0


class SelectorArgs(TabArgs):
    selector: str = Field(description="CSS selector of element")


class ClickArgs(SelectorArgs):
    wait_for_selector: bool = Field(True, description="Wait for selector to be visible")


class TypeArgs(SelectorArgs):
    text: str = Field(description="Text to type")
    clear_first: bool = Field(True, description="Clear existing text first")


class AttributeArgs(SelectorArgs):
    attribute: str = Field(description="Attribute name to get")


class ScriptArgs(TabArgs):
    script: str = Field(description="JavaScript code to execute")
    await_promise: bool = Field(False, description="Wait for promise to resolve")


class ScrollArgs(TabArgs):
    x: float = Field(0, description="Horizontal scroll position")
    y: float | None = Field(None, description="Vertical scroll position")
    selector: str | None = Field(None, description="CSS selector to scroll (scrolls window if not provided)")


class WaitArgs(SelectorArgs):
    timeout: float = Field(30000, description="Timeout in milliseconds")


class SelectArgs(SelectorArgs):
    value: str = Field(description="Value to select")


async def _selector_present(tab: TabSession, selector: str) -> bool:
    return await tab.eval_js(f"document.querySelector({js_literal(selector)}) !== null") is True


def interaction_tools(ctx: ServerContext) -> list[ToolDescriptor]:
    connector = ctx.connector
    config = ctx.config

    async def click(args: ClickArgs) -> dict[str, Any]:
        tab = await connector.get_tab(args.tab_id)
        await tab.enable("Runtime", "DOM")
        if args.wait_for_selector:
            found = await wait_for(lambda: _selector_present(tab, args.selector), CLICK_WAIT_TIMEOUT)
            if not found:
                raise LookupError(f"Selector not found: {args.selector}")
        await human_delay(config, 0.1, 0.3)
        await tab.eval_js(
            f"""(function() {{
                const el = document.querySelector({js_literal(args.selector)});
                if (!el) throw new Error('Element not found');
                el.scrollIntoView({{ behavior: 'smooth', block: 'center' }});
                el.click();
                return true;
            }})()"""
        )
        await human_delay(config)
        return {"success": True, "message": f"Clicked on element: {args.selector}"}

    async def type_text(args: TypeArgs) -> dict[str, Any]:
        tab = await connector.get_tab(args.tab_id)
        clear = 'el.value = "";' if args.clear_first else ""
        await tab.eval_js(
            f"""(async function() {{
                const el = document.querySelector({js_literal(args.selector)});
                if (!el) throw new Error('Element not found');
                el.scrollIntoView({{ behavior: 'smooth', block: 'center' }});
                el.focus();
                {clear}
                for (const ch of {js_literal(args.text)}) {{
                    el.value += ch;
                    el.dispatchEvent(new Event('input', {{ bubbles: true }}));
                    await new Promise(r => setTimeout(r, Math.random() * 50 + 30));
                }}
                el.dispatchEvent(new Event('change', {{ bubbles: true }}));
                return true;
            }})()""",
            await_promise=True,
        )
        await human_delay(config)
        return {"success": True, "message": f"Typed text into: {args.selector}"}

    async def get_text(args: SelectorArgs) -> dict[str, Any]:
        tab = await connector.get_tab(args.tab_id)
        text = await tab.eval_js(
            f"""(function() {{
                const el = document.querySelector({js_literal(args.selector)});
                if (!el) return null;
                return el.textContent.trim();
            }})()"""
        )
        if text is None:
            raise LookupError(f"Element not found: {args.selector}")
        return {"success": True, "text": text, "selector": args.selector}

    async def get_attribute(args: AttributeArgs) -> dict[str, Any]:
        tab = await connector.get_tab(args.tab_id)
        value = await tab.eval_js(
            f"""(function() {{
                const el = document.querySelector({js_literal(args.selector)});
                if (!el) return null;
                return el.getAttribute({js_literal(args.attribute)});
            }})()"""
        )
        return {"success": True, "value": value, "selector": args.selector, "attribute": args.attribute}

    async def execute_script(args: ScriptArgs) -> dict[str, Any]:
        tab = await connector.get_tab(args.tab_id)
        result = await tab.eval_js(args.script, await_promise=args.await_promise)
        return {"success": True, "result": result}

    async def scroll(args: ScrollArgs) -> dict[str, Any]:
        tab = await connector.get_tab(args.tab_id)
        x, y = args.x, args.y or 0
        if args.selector:
            script = f"""(function() {{
                const el = document.querySelector({js_literal(args.selector)});
                if (!el) throw new Error('Element not found');
                el.scrollTo({js_literal(x)}, {js_literal(y)});
                return true;
            }})()"""
        else:
            script = f"window.scrollTo({js_literal(x)}, {js_literal(y)})"
        await tab.eval_js(script)
        await human_delay(config)
        return {"success": True, "message": f"Scrolled to position ({x:g}, {y:g})"}

    async def wait_for_selector(args: WaitArgs) -> dict[str, Any]:
        tab = await connector.get_tab(args.tab_id)
        found = await wait_for(lambda: _selector_present(tab, args.selector), args.timeout / 1000)
        if not found:
            raise TimeoutError(f"Timeout waiting for selector: {args.selector}")
        return {"success": True, "message": f"Element found: {args.selector}"}

    async def select_option(args: SelectArgs) -> dict[str, Any]:
        tab = await connector.get_tab(args.tab_id)
        await tab.eval_js(
            f"""(function() {{
                const select = document.querySelector({js_literal(args.selector)});
                if (!select) throw new Error('Select element not found');
                select.value = {js_literal(args.value)};
                select.dispatchEvent(new Event('change', {{ bubbles: true }}));
                return true;
            }})()"""
        )
        await human_delay(config)
        return {"success": True, "message": f'Selected option "{args.value}" in {args.selector}'}

    return [
        tool("click", "Click on an element using CSS selector", ClickArgs, click),
        tool("type", "Type text into an input element", TypeArgs, type_text),
        tool("get_text", "Get text content from an element", SelectorArgs, get_text),
        tool("get_attribute", "Get attribute value from an element", AttributeArgs, get_attribute),
        tool("execute_script", "Execute JavaScript code in the page context", ScriptArgs, execute_script),
        tool("scroll", "Scroll the page or an element", ScrollArgs, scroll),
        tool("wait_for_selector", "Wait for an element to appear on the page", WaitArgs, wait_for_selector),
        tool("select_option", "Select an option from a dropdown", SelectArgs, select_option),
    ]


__all__ = ["interaction_tools"]
