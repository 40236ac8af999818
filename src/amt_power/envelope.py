"""WS-Management SOAP request bodies for AMT power management."""

import uuid
from typing import Any, Dict, Optional, cast

from lxml import etree

# ElementMaker is not typed yet, workaround from
#   https://github.com/python/mypy/issues/6948#issuecomment-654371424
from lxml.builder import ElementMaker as ElementMaker_untyped

ElementMaker = cast(Any, ElementMaker_untyped)


CIM = "http://schemas.dmtf.org/wbem/wscim/1/cim-schema/2"
SOAPENV = "http://www.w3.org/2003/05/soap-envelope"
ADR = "http://schemas.xmlsoap.org/ws/2004/08/addressing"
XSD = "http://schemas.dmtf.org/wbem/wsman/1/wsman.xsd"
ANONYMOUS = f"{ADR}/role/anonymous"

CIM_COMPUTER_SYSTEM = f"{CIM}/CIM_ComputerSystem"
CIM_POWER_MANAGEMENT_SERVICE = f"{CIM}/CIM_PowerManagementService"
CIM_ASSOCIATED_POWER_MANAGEMENT_SERVICE = f"{CIM}/CIM_AssociatedPowerManagementService"

REQUEST_POWER_STATE_CHANGE = f"{CIM_POWER_MANAGEMENT_SERVICE}/RequestPowerStateChange"
TRANSFER_GET = "http://schemas.xmlsoap.org/ws/2004/09/transfer/Get"
ENUMERATE = "http://schemas.dmtf.org/wbem/wscim/1/wsman/Enumerate"

POWER_MANAGEMENT_SERVICE_NAME = "Intel(r) AMT Power Management Service"

_NSMAP: Dict[Optional[str], str] = {
    None: SOAPENV,
    "a": ADR,
    "w": XSD,
}

E = ElementMaker(namespace=SOAPENV, nsmap=_NSMAP)
A = ElementMaker(namespace=ADR, nsmap=_NSMAP)
W = ElementMaker(namespace=XSD, nsmap=_NSMAP)


def _render(envelope: Any) -> str:
    return etree.tostring(envelope, xml_declaration=True, encoding="utf-8", pretty_print=True).decode("utf-8")


def _selector_set(**selectors: str) -> Any:
    return W.SelectorSet(
        *[W.Selector(value, Name=name) for name, value in selectors.items()]
    )


def _endpoint_reference(resource_uri: str, selector_set: Any) -> Any:
    return A.EndpointReference(
        A.Address(ANONYMOUS),
        A.ReferenceParameters(
            W.ResourceURI(resource_uri),
            selector_set,
        ),
    )


def _computer_system_selectors() -> Any:
    return _selector_set(
        CreationClassName="CIM_ComputerSystem",
        Name="ManagedSystem",
    )


def build_power_state_change_envelope(state: int) -> str:
    """
    Render a RequestPowerStateChange invocation.

    Args:
        state: CIM power state code (2 = on, 8 = off, 10 = reset)

    Returns:
        SOAP 1.2 envelope as a string
    """
    P = ElementMaker(namespace=CIM_POWER_MANAGEMENT_SERVICE, nsmap={"r": CIM_POWER_MANAGEMENT_SERVICE})

    envelope = E.Envelope(
        E.Header(
            A.Action(REQUEST_POWER_STATE_CHANGE),
            A.To("/wsman"),
            W.ResourceURI(CIM_POWER_MANAGEMENT_SERVICE),
            A.MessageID("1"),
            A.ReplyTo(A.Address(ANONYMOUS)),
            W.OperationTimeout("PT60S"),
        ),
        E.Body(
            P.RequestPowerStateChange_INPUT(
                P.PowerState(str(int(state))),
                P.ManagedElement(
                    A.Address(ANONYMOUS),
                    A.ReferenceParameters(
                        W.ResourceURI(CIM_COMPUTER_SYSTEM),
                        _computer_system_selectors(),
                    ),
                ),
            ),
        ),
    )
    return _render(envelope)


def build_get_power_state_envelope() -> str:
    """Render a Get of the associated power management service.

    Every call carries a new ``uuid:`` MessageID.
    """
    service_selectors = _selector_set(
        CreationClassName="CIM_PowerManagementService",
        Name=POWER_MANAGEMENT_SERVICE_NAME,
        SystemCreationClassName="CIM_ComputerSystem",
        SystemName="Intel(r) AMT",
    )

    envelope = E.Envelope(
        E.Header(
            A.To("/wsman"),
            A.Action(TRANSFER_GET),
            A.MessageID(f"uuid:{uuid.uuid4()}"),
            A.ReplyTo(A.Address(ANONYMOUS)),
            W.ResourceURI(CIM_ASSOCIATED_POWER_MANAGEMENT_SERVICE),
            W.SelectorSet(
                W.Selector(
                    _endpoint_reference(CIM_COMPUTER_SYSTEM, _computer_system_selectors()),
                    Name="UserOfService",
                ),
                W.Selector(
                    _endpoint_reference(CIM_POWER_MANAGEMENT_SERVICE, service_selectors),
                    Name="ServiceProvided",
                ),
            ),
        ),
        E.Body(),
    )
    return _render(envelope)
