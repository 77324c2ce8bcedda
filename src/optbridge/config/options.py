"""This module defines utilities for validating plugin options.

Solver plugins describe the options they accept per method with an
[`OptionsSchemaModel`][optbridge.config.options.OptionsSchemaModel]. The
schema produces a Pydantic model that validates the options found in the
solver parameters, rejecting unknown options and values of the wrong type.
"""

from __future__ import annotations

from typing import Any, Callable, Generic, TypeVar, Union

from pydantic import BaseModel, ConfigDict, HttpUrl, create_model, model_validator

T = TypeVar("T")


class OptionsSchemaModel(BaseModel):
    """Represents the overall schema for plugin options.

    The methods supported by a plugin are described by a dictionary of
    [`MethodSchemaModel`][optbridge.config.options.MethodSchemaModel] objects,
    keyed by method name.

    Attributes:
        methods: The method schemas.

    **Example**:
    ```py
    from optbridge.config.options import OptionsSchemaModel

    schema = OptionsSchemaModel.model_validate(
        {
            "methods": {
                "slsqp": {"options": {"ftol": float, "disp": bool}},
            }
        }
    )

    options = schema.get_options_model("slsqp")
    print(options.model_validate({"ftol": 1e-8}))  # ftol=1e-08 disp=None
    ```
    """

    methods: dict[str, MethodSchemaModel[Any]]

    model_config = ConfigDict(extra="forbid")

    def get_options_model(self, method: str) -> type[BaseModel]:
        """Create a Pydantic model for validating the options of a method.

        Args:
            method: The name of the method for which to create the options model.

        Returns:
            A Pydantic model class validating options of the specified method.

        Raises:
            ValueError: If the method is not part of the schema.
        """
        options: dict[str, Any] | None = None
        for method_name, method_schema in self.methods.items():
            if method_name.lower() == method.lower():
                options = {
                    option: (Union[type_, None], None)  # noqa: UP007
                    for option, type_ in method_schema.options.items()
                }
                break
        if options is None:
            msg = f"Method `{method}` not found in schema."
            raise ValueError(msg)

        def _extra_validator(self: Any) -> Any:  # noqa: ANN401
            if self.__pydantic_extra__:
                unknown_options = ", ".join(
                    f"`{option}`" for option in self.__pydantic_extra__
                )
                msg = f"Unknown or unsupported option(s): {unknown_options}"
                raise ValueError(msg)
            return self

        validator: Callable[..., Any] = model_validator(mode="after")(_extra_validator)  # type: ignore[assignment]

        return create_model(
            "OptionsModel",
            __config__=ConfigDict(extra="allow"),
            __validators__={"_extra_validator": validator},
            **options,
        )


class MethodSchemaModel(BaseModel, Generic[T]):
    """Represents the schema for a specific method within a plugin.

    Attributes:
        options: A dictionary mapping option names to their types.
        url:     An optional URL documenting the method.
    """

    options: dict[str, T]
    url: HttpUrl | None = None

    model_config = ConfigDict(extra="forbid")
