from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Protocol, runtime_checkable

PARAM_INT = 'int'


@dataclass
class FormElement:
    type: str
    name: str
    label: Optional[str] = None
    value: Any = None
    options: dict[Any, str] = field(default_factory=dict)
    attributes: dict[str, Any] = field(default_factory=dict)
    children: list['FormElement'] = field(default_factory=list)


@dataclass(frozen=True)
class DependencyRule:
    '''`element` is disabled/hidden while `dependency` meets `condition`.'''

    element: str
    dependency: str
    condition: str  # 'checked' | 'notchecked' | 'eq'
    value: Any = None

    def applies(self, submitted: Mapping[str, Any]) -> bool:
        current = submitted.get(self.dependency)
        if self.condition == 'checked':
            return bool(current) and current not in ('0', 0)
        if self.condition == 'notchecked':
            return not current or current in ('0', 0)
        if self.condition == 'eq':
            return str(current) == str(self.value)
        raise ValueError(f'Unknown rule condition: {self.condition}')


@runtime_checkable
class FormBuilder(Protocol):
    def create_element(
        self, type: str, name: str, label: Optional[str] = None, **kwargs: Any
    ) -> FormElement:
        pass

    def add_element(
        self, type: str, name: str, label: Optional[str] = None, **kwargs: Any
    ) -> FormElement:
        pass

    def add_group(
        self, elements: Iterable[FormElement], name: str, label: Optional[str] = None
    ) -> FormElement:
        pass

    def add_group_rule(self, group: str, rules: Mapping[str, list[tuple]]) -> None:
        pass

    def add_help_button(self, name: str, identifier: str, component: str) -> None:
        pass

    def set_type(self, name: str, param_type: str) -> None:
        pass

    def set_default(self, name: str, value: Any) -> None:
        pass

    def disabled_if(
        self, element: str, dependency: str, condition: str, value: Any = None
    ) -> None:
        pass

    def hide_if(
        self, element: str, dependency: str, condition: str, value: Any = None
    ) -> None:
        pass


class CriteriaForm:
    '''Declarative record of a criteria configuration form.

    Nothing is rendered here; the host walks `elements` and applies the
    recorded types, defaults and dependency rules.
    '''

    def __init__(self) -> None:
        self.elements: list[FormElement] = []
        self.defaults: dict[str, Any] = {}
        self.types: dict[str, str] = {}
        self.group_rules: dict[str, dict[str, list[tuple]]] = {}
        self.help_buttons: dict[str, tuple[str, str]] = {}
        self.disabled_rules: list[DependencyRule] = []
        self.hidden_rules: list[DependencyRule] = []

    def create_element(
        self, type: str, name: str, label: Optional[str] = None, **kwargs: Any
    ) -> FormElement:
        options = kwargs.pop('options', None) or {}
        value = kwargs.pop('value', None)
        return FormElement(
            type=type,
            name=name,
            label=label,
            value=value,
            options=dict(options),
            attributes=kwargs,
        )

    def add_element(
        self, type: str, name: str, label: Optional[str] = None, **kwargs: Any
    ) -> FormElement:
        element = self.create_element(type, name, label, **kwargs)
        self.elements.append(element)
        return element

    def add_group(
        self, elements: Iterable[FormElement], name: str, label: Optional[str] = None
    ) -> FormElement:
        group = FormElement(type='group', name=name, label=label, children=list(elements))
        self.elements.append(group)
        return group

    def add_group_rule(self, group: str, rules: Mapping[str, list[tuple]]) -> None:
        self.group_rules.setdefault(group, {}).update(rules)

    def add_help_button(self, name: str, identifier: str, component: str) -> None:
        self.help_buttons[name] = (identifier, component)

    def set_type(self, name: str, param_type: str) -> None:
        self.types[name] = param_type

    def set_default(self, name: str, value: Any) -> None:
        self.defaults[name] = value

    def disabled_if(
        self, element: str, dependency: str, condition: str, value: Any = None
    ) -> None:
        self.disabled_rules.append(DependencyRule(element, dependency, condition, value))

    def hide_if(
        self, element: str, dependency: str, condition: str, value: Any = None
    ) -> None:
        self.hidden_rules.append(DependencyRule(element, dependency, condition, value))

    # -- inspection -----------------------------------------------------

    def iter_elements(self) -> Iterable[FormElement]:
        for element in self.elements:
            yield element
            yield from element.children

    def get_element(self, name: str) -> Optional[FormElement]:
        return next((e for e in self.iter_elements() if e.name == name), None)

    def is_hidden(self, name: str, submitted: Mapping[str, Any]) -> bool:
        return any(r.element == name and r.applies(submitted) for r in self.hidden_rules)

    def is_disabled(self, name: str, submitted: Mapping[str, Any]) -> bool:
        return any(
            r.element == name and r.applies(submitted) for r in self.disabled_rules
        )

    def validate(self, submitted: Mapping[str, Any]) -> dict[str, str]:
        '''Check group rules and declared types; returns field -> error message.'''
        errors: dict[str, str] = {}
        for rules in self.group_rules.values():
            for name, checks in rules.items():
                if self.is_hidden(name, submitted) or self.is_disabled(name, submitted):
                    continue
                for message, kind, *_ in checks:
                    value = submitted.get(name)
                    if kind == 'required' and (value is None or str(value).strip() == ''):
                        errors[name] = message
        for name, param_type in self.types.items():
            value = submitted.get(name)
            if name in errors or value in (None, ''):
                continue
            if param_type == PARAM_INT:
                try:
                    int(value)
                except (TypeError, ValueError):
                    errors[name] = f'{name} must be a whole number'
        return errors
