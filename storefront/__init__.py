# storefront package
