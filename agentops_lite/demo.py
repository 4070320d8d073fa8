"""Demo assistant exercising every instrumentation path of a tracker."""

from __future__ import annotations

import asyncio

from agentops_lite.tracking import Tracker, operation, tool, trace
from agentops_lite.tracking.models import EndState

SCENARIOS = ("simple", "tool", "workflow", "manual")


class DemoAssistant:
    """A fake AI assistant whose methods are instrumented at construction.

    *delay* scales the simulated latencies (seconds for a "model call";
    tool calls take half of it).
    """

    def __init__(self, tracker: Tracker, delay: float = 1.0):
        self.tracker = tracker
        self.delay = delay
        self.generate_response = operation(tracker, "generate_response")(self._generate_response)
        self.search_web = tool(tracker, "web_search", cost=0.05)(self._search_web)
        self.complex_workflow = trace(tracker, "complex_workflow", ["workflow", "ai"])(
            self._complex_workflow
        )

    async def _generate_response(self, prompt: str) -> str:
        await asyncio.sleep(self.delay)
        response = f"AI Response to: {prompt}"
        self.tracker.record_llm(
            model="gpt-3.5-turbo",
            prompt=prompt,
            response=response,
            tokens=100,
            cost=0.001,
            latency=int(self.delay * 1000),
        )
        return response

    async def _search_web(self, query: str) -> str:
        await asyncio.sleep(self.delay / 2)
        return f"Search results for: {query}"

    async def _complex_workflow(self, task: str) -> str:
        search_result = await self.search_web(task)
        return await self.generate_response(
            f"Based on search: {search_result}, please respond to: {task}"
        )

    async def manual_trace(self) -> str:
        trace_id = self.tracker.start_trace("Manual Trace Example", ["manual", "demo"])
        try:
            self.tracker.record_action(
                action="user_interaction",
                params={"button": "manual_trace"},
                result={"started": True},
            )
            await asyncio.sleep(self.delay)
            self.tracker.record_action(
                action="process_complete",
                params={"duration": int(self.delay * 1000)},
                result={"success": True},
            )
        except Exception as e:
            self.tracker.record_error(e, {"trace": "manual_trace"})
            self.tracker.end_trace(trace_id, EndState.FAIL)
            raise
        self.tracker.end_trace(trace_id, EndState.SUCCESS)
        return "Manual trace completed successfully"


async def run_scenario(assistant: DemoAssistant, scenario: str) -> str:
    """Run one named scenario; failures are recorded and reported as output."""
    try:
        if scenario == "simple":
            return await assistant.generate_response("Hello, how are you?")
        if scenario == "tool":
            return await assistant.search_web("Python packaging best practices")
        if scenario == "workflow":
            return await assistant.complex_workflow("How to profile asyncio code?")
        if scenario == "manual":
            return await assistant.manual_trace()
    except Exception as e:
        assistant.tracker.record_error(e, {"operation": f"{scenario}_scenario"})
        return "Error occurred"
    raise ValueError(f"Unknown scenario: {scenario}")
