"""Example showing project creation and status polling."""

import asyncio

from provisioner import ProjectCreationWorkflow, StackRunner
from provisioner.config import load_config
from provisioner.contracts import ProjectCreationRequest, WorkflowStatus


async def main():
    """Create a repository from the ecommerce template and poll until done."""
    config = load_config()
    workflow = ProjectCreationWorkflow(StackRunner(config=config), config=config)

    request = ProjectCreationRequest.model_validate(
        {
            "templateName": "ecommerce",
            "projectName": "shopdemo",
            "parameters": {"app": {"framework": "react", "description": "Shop"}},
            "platform": {"type": "GitHub"},
        }
    )

    request_id = await workflow.submit(request)
    print(f"✅ Request accepted: {request_id}")

    while True:
        state = await workflow.get_state(request_id)
        print(f"📋 {state.current_step.value} ({state.steps_completed} steps completed)")
        if state.status is not WorkflowStatus.IN_PROGRESS:
            break
        await asyncio.sleep(2)

    if state.status is WorkflowStatus.SUCCESS:
        for key, value in state.outputs.items():
            print(f"🔗 {key}: {value}")
    else:
        print(f"❌ {state.error_message}")


if __name__ == "__main__":
    asyncio.run(main())
