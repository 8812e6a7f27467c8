"""Convenience wrappers for common MES4 services (one request, one response each)."""

from dataclasses import dataclass

from .connector import MES4Connector
from .errors import ServiceCallError
from .types import ServicePackage

MCLASS_ORDER = 100
MNO_GET_OP_FOR_RESOURCE = 1
MNO_GET_STEP_DESCRIPTION = 33


@dataclass(frozen=True)
class OperationForResource:
    """Next operation planned for a resource (service 100/1, GetOpForRsc)."""

    error_state: int
    step_no: int
    o_pos: int
    wp_no: int
    resource_id: int
    main_o_pos: int
    c_no: int
    p_no: int
    error_step_no: int


def _field(response: ServicePackage, name: str) -> int | str:
    try:
        return response.standard_parameters[name]
    except KeyError:
        raise ServiceCallError(f"Response is missing parameter {name!r}") from None


def get_operation_for_resource(
    connector: MES4Connector,
    resource_id: int,
    error_state: int = 0,
) -> OperationForResource:
    """Ask the MES which order step the given resource should work on next."""
    request = ServicePackage(
        MCLASS_ORDER,
        MNO_GET_OP_FOR_RESOURCE,
        error_state,
        standard_parameters={"#ResourceID": resource_id},
    )
    response = connector.call_service(request)
    return OperationForResource(
        error_state=response.error_state,
        step_no=_field(response, "StepNo"),
        o_pos=_field(response, "OPos"),
        wp_no=_field(response, "WPNo"),
        resource_id=_field(response, "ResourceID"),
        main_o_pos=_field(response, "MainOPos"),
        c_no=_field(response, "CNo"),
        p_no=_field(response, "PNo"),
        error_step_no=_field(response, "ErrorStepNo"),
    )


def get_step_description(
    connector: MES4Connector,
    order_no: int,
    order_pos: int,
    error_state: int = 0,
) -> ServicePackage:
    """Fetch the description of what to do for order position order_no/order_pos."""
    request = ServicePackage(
        MCLASS_ORDER,
        MNO_GET_STEP_DESCRIPTION,
        error_state,
        standard_parameters={"#ONo": order_no, "#OPos": order_pos},
    )
    return connector.call_service(request)
